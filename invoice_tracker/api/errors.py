"""
Map service failures to JSON error responses
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from invoice_tracker.exceptions import InvoiceTrackerError

logger = logging.getLogger(__name__)


async def invoice_tracker_error_handler(request: Request, exc: InvoiceTrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "error": type(exc).__name__}
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvoiceTrackerError, invoice_tracker_error_handler)
