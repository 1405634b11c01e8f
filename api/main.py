"""HTTP API for the Checklist service.

Provides the two storage endpoints used by the checklist form (save a rendered
receipt, list stored receipts) plus a download endpoint for a stored receipt.
Every error response carries a JSON body of the form ``{"error": ...}``.

Copyright (c) Bryn Gwalad 2025
"""

import base64
import binascii
import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from dotenv import load_dotenv

# Load environment variables from a .env file at project root if present.
load_dotenv()

from utils.storage import STORAGE_DIR, BadRequest, FileSystemStorage, StorageError
from .models import SavePdfRequest

# Signature images and PDF bytes are inflated by base64; the form posts
# bodies of several megabytes.
MAX_BODY_BYTES = int(os.getenv("MAX_BODY_MB", "50")) * 1024 * 1024

app = FastAPI(title="Checklist API")

# Module logger
logger = logging.getLogger("checklist_api")

_storage = FileSystemStorage(STORAGE_DIR)


def get_storage() -> FileSystemStorage:
    """Storage dependency; tests override it with a temporary directory."""
    return _storage


@app.on_event("startup")
async def on_startup():
    """Application startup handler.

    Configures logging and makes sure the storage directory exists.
    """
    # Configure logger (do not override global config if already set by app)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    try:
        _storage.ensure_directory()
    except OSError:
        # reported per request as WriteFailure / ReadFailure
        logger.exception("Could not create storage directory %s", _storage.directory)
    logger.info("Checklist API starting; storage=%s", _storage.directory)


class PayloadTooLarge(HTTPException):
    def __init__(self):
        super().__init__(status_code=413, detail="Payload too large")


class BodySizeLimitMiddleware:
    """Reject request bodies larger than MAX_BODY_BYTES.

    A declared Content-Length is checked up front; chunked bodies are counted
    as they are received and abort the request once they pass the limit.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        limit = MAX_BODY_BYTES
        length = dict(scope.get("headers") or []).get(b"content-length", b"")
        if length.isdigit() and int(length) > limit:
            response = JSONResponse(status_code=413, content={"error": "Payload too large"})
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    raise PayloadTooLarge()
            return message

        await self.app(scope, limited_receive, send)


app.add_middleware(BodySizeLimitMiddleware)


@app.exception_handler(PayloadTooLarge)
async def payload_too_large_handler(request: Request, exc: PayloadTooLarge):
    return JSONResponse(status_code=413, content={"error": exc.detail})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Missing data"})


@app.post("/api/save-pdf")
def save_pdf(body: SavePdfRequest, storage: FileSystemStorage = Depends(get_storage)):
    """Store a base64-encoded receipt under ``fileName``.

    An existing file with the same name is replaced.
    """
    if not body.fileName or not body.pdfBase64:
        raise BadRequest()
    try:
        payload = base64.b64decode(body.pdfBase64, validate=True)
    except (binascii.Error, ValueError):
        raise BadRequest("Invalid base64 payload")
    path = storage.persist(body.fileName, payload)
    return {"message": "PDF saved successfully", "path": path}


@app.get("/api/history")
def get_history(storage: FileSystemStorage = Depends(get_storage)):
    """Return every stored receipt with its last-modified time.

    Entries come in directory order; callers sort if they need chronology.
    """
    return [jsonable_encoder(entry) for entry in storage.list_history()]


@app.get("/api/history/{file_name}")
def download_receipt(file_name: str, storage: FileSystemStorage = Depends(get_storage)):
    """Return the bytes of a stored receipt."""
    path = storage.open_document(file_name)
    return FileResponse(path, media_type="application/pdf", filename=file_name)


@app.get("/health")
def health_check():
    return {"status": "healthy"}
