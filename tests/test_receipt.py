"""Tests for the PDF receipt renderer.

Receipts are rendered without page compression here so the drawn text can be
found in the raw PDF bytes.

Copyright (c) Bryn Gwalad 2025
"""

import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import base64
import unittest
from datetime import datetime
from io import BytesIO

from PIL import Image

from api.models import SubmissionRecord, SubmissionStatus
from utils.checklist import baseline_items
from utils.receipt import (
    build_file_name,
    download_name,
    render_receipt,
    status_label,
    table_rows,
)


def _signature_png() -> str:
    buf = BytesIO()
    Image.new("RGB", (120, 48), "white").save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def _record(**overrides) -> SubmissionRecord:
    values = {
        "id": "1700000000000",
        "teacher_name": "Carlos",
        "date": datetime(2024, 3, 5, 14, 7),
        "items": baseline_items(),
        "signature": _signature_png(),
    }
    values.update(overrides)
    return SubmissionRecord(**values)


class TableRowsTest(unittest.TestCase):
    def test_header_and_row_per_item(self):
        rows = table_rows(_record())
        self.assertEqual(rows[0], ["Categoria", "Item", "Esperado", "Encontrado", "Status"])
        self.assertEqual(len(rows), 1 + 7)
        self.assertTrue(all(row[4] == "OK" for row in rows[1:]))

    def test_divergent_row(self):
        items = baseline_items()
        hdmi = next(i for i in items if i.name == "Cabo HDMI")
        hdmi.current_quantity = 0
        rows = table_rows(_record(items=items))
        row = next(r for r in rows if r[1] == "Cabo HDMI")
        self.assertEqual(row, ["CABOS", "Cabo HDMI", "1", "0", "DIVERGENTE"])

    def test_status_labels(self):
        self.assertEqual(status_label(SubmissionStatus.COMPLETED), "CONCLUÍDO")
        self.assertEqual(status_label(SubmissionStatus.PENDING), "PENDENTE")


class RenderTest(unittest.TestCase):
    def test_renders_pdf_with_info_and_footer(self):
        pdf = render_receipt(_record(usage_start_time="07:30", usage_end_time="09:10"), compress=False).pdf_bytes
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertIn(b"Carlos", pdf)
        self.assertIn(b"05/03/2024 14:07", pdf)
        self.assertIn(b"07:30", pdf)
        self.assertIn(b"Documento gerado eletronicamente em 05/03/2024 14:07", pdf)
        self.assertIn(b"Assinatura Digital:", pdf)

    def test_no_justification_block_without_justification(self):
        pdf = render_receipt(_record(), compress=False).pdf_bytes
        self.assertNotIn(b"Justificativa", pdf)

    def test_justification_block_when_present(self):
        items = baseline_items()
        items[4].current_quantity = 0
        record = _record(items=items, justification="Cable lost.")
        pdf = render_receipt(record, compress=False).pdf_bytes
        self.assertIn(b"Justificativa", pdf)
        self.assertIn(b"Cable lost.", pdf)
        self.assertIn(b"DIVERGENTE", pdf)

    def test_without_signature(self):
        pdf = render_receipt(_record(signature=None), compress=False).pdf_bytes
        self.assertNotIn(b"Assinatura Digital:", pdf)

    def test_undecodable_signature_does_not_crash(self):
        pdf = render_receipt(_record(signature="data:image/png;base64,bm90IGFuIGltYWdl"), compress=False).pdf_bytes
        self.assertIn(b"Assinatura Digital:", pdf)

    def test_long_item_list_paginates(self):
        items = baseline_items() * 30
        pdf = render_receipt(_record(items=items), compress=False).pdf_bytes
        self.assertGreater(pdf.count(b"/Type /Page") - pdf.count(b"/Type /Pages"), 1)

    def test_base64_matches_bytes(self):
        receipt = render_receipt(_record())
        self.assertEqual(base64.b64decode(receipt.pdf_base64), receipt.pdf_bytes)
        self.assertFalse(receipt.pdf_base64.startswith("data:"))


class FileNameTest(unittest.TestCase):
    def test_build_file_name(self):
        when = datetime.fromtimestamp(1700000000.123)
        self.assertEqual(build_file_name("Ana  Maria Souza", when), "checklist_ana_maria_souza_1700000000123.pdf")

    def test_download_name(self):
        self.assertEqual(download_name("Carlos Lima"), "checklist_carlos_lima.pdf")

    def test_separators_do_not_leave_storage(self):
        self.assertNotIn("/", build_file_name("A/B", datetime.now()))


if __name__ == "__main__":
    unittest.main()
