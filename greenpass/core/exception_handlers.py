"""Global exception handlers for consistent error responses.

This module registers exception handlers that convert all exceptions
to a unified JSON response format.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from greenpass.core.exceptions import AppException, ValidationError

logger = logging.getLogger("greenpass.exception")


def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle all AppException subclasses."""
    extra = {
        "method": request.method,
        "path": request.url.path,
        "status_code": exc.status_code,
        "error_type": exc.error_type,
    }
    if exc.status_code >= 500:
        logger.error("AppException: %s - %s", exc.error_type, exc.message, extra=extra)
    else:
        logger.info("AppException: %s - %s", exc.error_type, exc.message, extra=extra)

    content: dict[str, Any] = {
        "type": exc.error_type,
        "message": exc.message,
        "retryable": exc.retryable,
    }
    if isinstance(exc, ValidationError) and exc.fields:
        content["fields"] = exc.fields

    return JSONResponse(status_code=exc.status_code, content=content)


def http_exception_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle HTTPException raised by Starlette routing (404/405)."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"type": "http_error", "message": str(exc.detail), "retryable": False},
    )


def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic request validation errors with unified format."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error["loc"] if part not in ("body", "query")]
        field = ".".join(loc)
        fields[field or "request"] = error["msg"]

    message = "; ".join(
        f"{field}: {msg}" if field != "request" else msg
        for field, msg in fields.items()
    )
    return JSONResponse(
        status_code=422,
        content={
            "type": "validation_error",
            "message": message,
            "retryable": False,
            "fields": fields,
        },
    )


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors."""
    logger.error(
        "Unhandled exception: %s %s - %s",
        request.method,
        request.url.path,
        exc,
        extra={"method": request.method, "path": request.url.path, "status_code": 500},
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "type": "internal_error",
            "message": "An unexpected error occurred",
            "retryable": False,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
