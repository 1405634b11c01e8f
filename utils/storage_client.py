"""HTTP client for the Checklist API exposing the ``Storage`` interface.

The form controller does not care whether receipts land in a local
directory or behind the HTTP API; this module lets it talk to a running
server through the same two operations.

Copyright (c) Bryn Gwalad 2025
"""

import base64
import logging
import os
from datetime import datetime
from typing import List, Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

from api.models import HistoryEntry
from utils.storage import BadRequest, NetworkFailure, ReadFailure, Storage, WriteFailure

STORAGE_SERVER_URL = os.getenv("STORAGE_SERVER_URL", "http://127.0.0.1:8000")
DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=5.0)

logger = logging.getLogger("checklist.storage_client")


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        return response.json().get("error")
    except Exception:
        return None


class HttpStorage(Storage):
    """Storage backed by ``POST /api/save-pdf`` and ``GET /api/history``.

    Pass ``client`` to reuse an existing ``httpx.Client`` (the FastAPI
    ``TestClient`` works too); otherwise one is created for ``base_url``.
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.Client] = None):
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url or STORAGE_SERVER_URL, timeout=DEFAULT_TIMEOUT)

    def persist(self, file_name: str, payload: bytes) -> str:
        body = {
            "fileName": file_name,
            "pdfBase64": base64.b64encode(payload or b"").decode("ascii"),
        }
        try:
            response = self._client.post("/api/save-pdf", json=body)
        except httpx.HTTPError as exc:
            logger.exception("Error saving to server: %s", file_name)
            raise NetworkFailure() from exc
        if response.status_code == 400:
            raise BadRequest(_error_message(response))
        if response.status_code != 200:
            logger.error("Save of %s failed with HTTP %s", file_name, response.status_code)
            raise WriteFailure()
        try:
            return response.json()["path"]
        except (ValueError, KeyError, TypeError) as exc:
            logger.exception("Unexpected response saving %s", file_name)
            raise WriteFailure() from exc

    def list_history(self) -> List[HistoryEntry]:
        try:
            response = self._client.get("/api/history")
        except httpx.HTTPError as exc:
            logger.exception("Error fetching history")
            raise NetworkFailure() from exc
        if response.status_code != 200:
            logger.error("History request failed with HTTP %s", response.status_code)
            raise ReadFailure()
        try:
            return [
                HistoryEntry(name=entry["name"], date=datetime.fromisoformat(entry["date"]))
                for entry in response.json()
            ]
        except (ValueError, KeyError, TypeError) as exc:
            logger.exception("Unexpected history response")
            raise ReadFailure() from exc

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
