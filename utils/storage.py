"""Storage helpers for the Checklist API.

Utilities provided:
- the ``Storage`` interface used by the API and the form controller
- a flat-directory implementation, ``FileSystemStorage``
- the storage error taxonomy

The default storage directory is ``storage`` (configurable via the
``STORAGE_DIR`` environment variable). The directory listing is the only
index of stored receipts; there is no manifest and no database.

Writes are last-writer-wins: persisting an existing name replaces its bytes
without any locking. Callers keep names unique by embedding a millisecond
timestamp (see ``utils.receipt.build_file_name``).

Copyright (c) Bryn Gwalad 2025
"""

import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()

from api.models import HistoryEntry

STORAGE_DIR = os.getenv("STORAGE_DIR", "storage")
DOCUMENT_EXTENSION = ".pdf"

logger = logging.getLogger("checklist.storage")


class StorageError(Exception):
    """Base class for storage failures.

    ``public_message`` is safe to show to end users; the original cause is
    kept on ``__cause__`` and only logged.
    """

    status_code = 500
    public_message = "Storage failure"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)
        if message:
            self.public_message = message


class BadRequest(StorageError):
    status_code = 400
    public_message = "Missing data"


class DocumentNotFound(StorageError):
    status_code = 404
    public_message = "Document not found"


class WriteFailure(StorageError):
    public_message = "Failed to save PDF"


class ReadFailure(StorageError):
    public_message = "Failed to read history"


class NetworkFailure(StorageError):
    status_code = 502
    public_message = "Storage server unreachable"


class Storage(ABC):
    """Persist rendered receipts and enumerate them."""

    @abstractmethod
    def persist(self, file_name: str, payload: bytes) -> str:
        """Store ``payload`` under ``file_name`` and return where it went."""

    @abstractmethod
    def list_history(self) -> List[HistoryEntry]:
        """Return every stored receipt with its modification time."""


class FileSystemStorage(Storage):
    """Receipts stored as files in a single flat directory."""

    def __init__(self, directory=None):
        self.directory = Path(directory or STORAGE_DIR)

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def persist(self, file_name: str, payload: bytes) -> str:
        if not file_name or not payload:
            raise BadRequest()
        path = self._resolve(file_name)
        try:
            self.ensure_directory()
            path.write_bytes(payload)
        except OSError as exc:
            logger.exception("Error saving PDF %s", path)
            raise WriteFailure() from exc
        logger.info("Saved %s (%d bytes)", path, len(payload))
        return str(path.resolve())

    def list_history(self) -> List[HistoryEntry]:
        # a storage area that was never written to is an empty history
        if not self.directory.exists():
            return []
        entries = []
        try:
            for name in os.listdir(self.directory):
                if not name.endswith(DOCUMENT_EXTENSION):
                    continue
                mtime = (self.directory / name).stat().st_mtime
                entries.append(HistoryEntry(name=name, date=datetime.fromtimestamp(mtime)))
        except OSError as exc:
            logger.exception("Error reading history from %s", self.directory)
            raise ReadFailure() from exc
        return entries

    def open_document(self, file_name: str) -> Path:
        """Return the path of a stored receipt, for download."""
        path = self._resolve(file_name)
        if not path.is_file():
            raise DocumentNotFound()
        return path

    def _resolve(self, file_name: str) -> Path:
        # names are flat; anything that could leave the directory is rejected
        if os.path.basename(file_name) != file_name or file_name in (".", ".."):
            raise BadRequest("Invalid file name")
        return self.directory / file_name
