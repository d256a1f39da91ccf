"""
Exception handlers.

Every error leaves the API as `{"error": "<message>"}` with the status of
the exception that caused it.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from estate_crm.core.errors import CRMError
from estate_crm.integrations.sentry import capture_exception

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def validation_message(exc: RequestValidationError) -> str:
    """First validation error as `field: message`."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    # Drop the "body"/"query" prefix FastAPI puts in front of field names
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = first.get("msg", "Invalid value")
    return f"{'.'.join(location)}: {message}" if location else message


def internal_error(request: Request, exc: Exception) -> JSONResponse:
    """Log and report a crash, answering with a generic 500."""
    logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}", exc_info=exc)
    capture_exception(exc, path=request.url.path)
    return error_response(500, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Register the handlers for CRM errors, HTTP errors and crashes."""

    @app.exception_handler(CRMError)
    async def crm_error_handler(request: Request, exc: CRMError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
            capture_exception(exc, path=request.url.path)
        else:
            logger.warning(f"{exc.status_code} on {request.method} {request.url.path}: {exc.message}")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = validation_message(exc)
        logger.warning(f"Validation error on {request.method} {request.url.path}: {message}")
        return error_response(400, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        return internal_error(request, exc)
