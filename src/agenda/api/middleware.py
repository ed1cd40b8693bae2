"""API error handling middleware: consistent error responses.

Registers FastAPI exception handlers that convert calendar exceptions into
``{"success": false, "message": "...", "code": "..."}`` JSON responses.

Status code mapping:
- ``ValidationError`` / ``RequestValidationError`` → 400 Bad Request
- ``AuthContextMissing`` → 401 Unauthorized
- ``AggregationTimeout`` → 504 Gateway Timeout
- ``SourceFetchFailure`` → 500 Internal Server Error
- Any other ``Exception`` → 500 Internal Server Error

Storage errors and tracebacks are logged, never returned to the client.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from agenda.api.models import ErrorResponse
from agenda.calendar.errors import (
    AggregationTimeout,
    AuthContextMissing,
    SourceFetchFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)

_INTERNAL_MESSAGE = "Internal server error"


def _error(status_code: int, message: str, code: str) -> JSONResponse:
    body = ErrorResponse(message=message, code=code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    """Return 400 for window and filter validation failures."""
    logger.info("Validation error on %s: field=%s", request.url.path, exc.field)
    return _error(400, str(exc), "VALIDATION_ERROR")


async def _handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 400 naming only the offending parameter, never echoing its value."""
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    logger.info("Request validation error on %s: fields=%s", request.url.path, fields)
    message = f"Invalid parameter: {', '.join(fields)}" if fields else "Invalid request"
    return _error(400, message, "VALIDATION_ERROR")


async def _handle_auth_context_missing(request: Request, exc: AuthContextMissing) -> JSONResponse:
    """Return 401 when the auth layer attached no actor."""
    logger.warning("No actor attached to %s %s", request.method, request.url.path)
    return _error(401, str(exc), "AUTH_CONTEXT_MISSING")


async def _handle_timeout(request: Request, exc: AggregationTimeout) -> JSONResponse:
    """Return 504 when the source fetches exceeded the configured timeout."""
    logger.warning("Aggregation timeout on %s: %s", request.url.path, exc)
    return _error(504, str(exc), "TIMEOUT")


async def _handle_source_failure(request: Request, exc: SourceFetchFailure) -> JSONResponse:
    """Return 500 without exposing the storage error."""
    logger.error("Source fetch failed on %s: source=%s", request.url.path, exc.source)
    return _error(500, _INTERNAL_MESSAGE, "INTERNAL_ERROR")


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    This sits above the Starlette exception handler layer, ensuring that
    even exceptions not caught by ``add_exception_handler`` are converted
    to the standard error envelope rather than bubbling up as raw 500s.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return _error(500, _INTERNAL_MESSAGE, "INTERNAL_ERROR")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    ``AggregationTimeout`` subclasses ``SourceFetchFailure``; Starlette
    resolves handlers along the exception's MRO, so the more specific
    handler wins.
    """
    app.add_exception_handler(ValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_request_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(AuthContextMissing, _handle_auth_context_missing)  # type: ignore[arg-type]
    app.add_exception_handler(AggregationTimeout, _handle_timeout)  # type: ignore[arg-type]
    app.add_exception_handler(SourceFetchFailure, _handle_source_failure)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
