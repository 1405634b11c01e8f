"""Tests for the Checklist API.

These tests exercise the save, history and download endpoints against a
temporary storage directory.

Copyright (c) Bryn Gwalad 2025
"""

# Ensure the project root is on sys.path so tests can be executed directly from
# the `tests/` directory (e.g. `python test_api.py`) and still import the
# `api` package.
import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


import base64
import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from api.main import app, get_storage
from utils.storage import FileSystemStorage

PDF_BYTES = b"%PDF-1.4\n% test receipt\n%%EOF\n"
PDF_B64 = base64.b64encode(PDF_BYTES).decode("ascii")


class ChecklistAPITest(unittest.TestCase):
    """Unittests for the Checklist API. Using unittest lets you run all
    tests together (python -m unittest) or still run them via pytest.
    """

    @classmethod
    def setUpClass(cls):
        # TestClient is created once for the test class
        cls.client = TestClient(app)

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.storage = FileSystemStorage(Path(self._tmp.name) / "storage")
        app.dependency_overrides[get_storage] = lambda: self.storage

    def tearDown(self):
        app.dependency_overrides.clear()
        self._tmp.cleanup()

    def test_save_and_list_history(self):
        # filesystem timestamps come from a coarser clock than datetime.now()
        before = datetime.now() - timedelta(seconds=1)
        resp = self.client.post(
            "/api/save-pdf", json={"fileName": "checklist_ana_1.pdf", "pdfBase64": PDF_B64}
        )
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["message"], "PDF saved successfully")
        self.assertEqual(Path(body["path"]).read_bytes(), PDF_BYTES)

        resp = self.client.get("/api/history")
        self.assertEqual(resp.status_code, 200)
        history = resp.json()
        self.assertEqual([h["name"] for h in history], ["checklist_ana_1.pdf"])
        self.assertGreaterEqual(datetime.fromisoformat(history[0]["date"]), before)

    def test_empty_history(self):
        resp = self.client.get("/api/history")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), [])

    def test_missing_fields_are_rejected_without_write(self):
        for body in (
            {"pdfBase64": PDF_B64},
            {"fileName": "a.pdf"},
            {"fileName": "", "pdfBase64": PDF_B64},
            {},
        ):
            resp = self.client.post("/api/save-pdf", json=body)
            self.assertEqual(resp.status_code, 400, body)
            self.assertIn("error", resp.json())
        self.assertFalse(self.storage.directory.exists())

    def test_non_json_body_is_a_bad_request(self):
        resp = self.client.post(
            "/api/save-pdf", content=b"not json", headers={"Content-Type": "application/json"}
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("error", resp.json())

    def test_invalid_base64_is_a_bad_request(self):
        resp = self.client.post("/api/save-pdf", json={"fileName": "a.pdf", "pdfBase64": "abc"})
        self.assertEqual(resp.status_code, 400)

    def test_base64_outside_alphabet_is_rejected(self):
        for payload in ("data:application/pdf;base64," + PDF_B64, PDF_B64[:8] + "!!!!" + PDF_B64[8:]):
            resp = self.client.post("/api/save-pdf", json={"fileName": "a.pdf", "pdfBase64": payload})
            self.assertEqual(resp.status_code, 400, payload[:40])
            self.assertEqual(resp.json(), {"error": "Invalid base64 payload"})
        self.assertFalse(self.storage.directory.exists())

    def test_write_failure_hides_cause(self):
        blocker = Path(self._tmp.name) / "blocked"
        blocker.write_text("not a directory")
        app.dependency_overrides[get_storage] = lambda: FileSystemStorage(blocker)
        resp = self.client.post("/api/save-pdf", json={"fileName": "a.pdf", "pdfBase64": PDF_B64})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Failed to save PDF"})

    def test_read_failure(self):
        blocker = Path(self._tmp.name) / "blocked"
        blocker.write_text("not a directory")
        app.dependency_overrides[get_storage] = lambda: FileSystemStorage(blocker)
        resp = self.client.get("/api/history")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "Failed to read history"})

    def test_download_stored_receipt(self):
        self.client.post("/api/save-pdf", json={"fileName": "a.pdf", "pdfBase64": PDF_B64})
        resp = self.client.get("/api/history/a.pdf")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.content, PDF_BYTES)
        self.assertTrue(resp.headers["content-type"].startswith("application/pdf"))

        resp = self.client.get("/api/history/missing.pdf")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"error": "Document not found"})

    def test_oversized_body_is_rejected(self):
        with mock.patch("api.main.MAX_BODY_BYTES", 16):
            resp = self.client.post("/api/save-pdf", json={"fileName": "a.pdf", "pdfBase64": PDF_B64})
        self.assertEqual(resp.status_code, 413)
        self.assertFalse(self.storage.directory.exists())

    def test_oversized_chunked_body_is_rejected(self):
        body = ('{"fileName": "a.pdf", "pdfBase64": "' + PDF_B64 + '"}').encode("ascii")

        def chunks():
            yield body[:10]
            yield body[10:]

        with mock.patch("api.main.MAX_BODY_BYTES", 16):
            resp = self.client.post(
                "/api/save-pdf", content=chunks(), headers={"Content-Type": "application/json"}
            )
        self.assertEqual(resp.status_code, 413)
        self.assertEqual(resp.json(), {"error": "Payload too large"})
        self.assertFalse(self.storage.directory.exists())

    def test_large_payload_is_accepted(self):
        payload = base64.b64encode(os.urandom(3 * 1024 * 1024)).decode("ascii")
        resp = self.client.post("/api/save-pdf", json={"fileName": "big.pdf", "pdfBase64": payload})
        self.assertEqual(resp.status_code, 200)

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.json(), {"status": "healthy"})


if __name__ == "__main__":
    # Allow running this test file directly
    unittest.main()
