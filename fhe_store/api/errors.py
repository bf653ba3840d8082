"""
Translation of store errors into HTTP responses
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.exceptions import EncryptedStoreError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "encode_range_error": 422,
    "decode_failure": 422,
    "key_mismatch": 409,
    "not_found": 404,
    "storage_io": 503,
    "context_not_ready": 503,
    "search_cancelled": 504,
    "parameter_invalid": 500,
    "persistence_corrupt": 500,
}


async def store_error_handler(request: Request, exc: EncryptedStoreError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.kind, "detail": exc.message})


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(EncryptedStoreError, store_error_handler)
