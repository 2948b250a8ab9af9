"""Translate exceptions into the service's JSON error envelope.

Body shape for every handled error::

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}

A failed admission decision (store outage, corrupt record) is always a 500,
never a 429: clients must be able to tell "slow down" from "we are broken".
For server faults only the code reaches the client; message and details can
name hosts or payload fragments and stay in the logs.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitStateError,
    StoreAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

GENERIC_SERVER_MESSAGE = "Internal server error"

_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (AuthenticationAppError, 403),
    (StoreAppError, 500),
    (RateLimitStateError, 500),
)


def status_code_for(exc: AppError) -> int:
    """HTTP status for a domain error; unlisted subclasses are client faults (400)."""
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status_code
    return 400


def _envelope(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    body = {"code": code, "message": message, "request_id": get_request_id()}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an ``AppError`` with the status from ``status_code_for``."""
    status_code = status_code_for(exc)
    server_fault = status_code >= 500

    logger.log(
        logging.ERROR if server_fault else logging.WARNING,
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_class": type(exc).__name__,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
        },
    )

    if server_fault:
        return _envelope(status_code, exc.code, GENERIC_SERVER_MESSAGE)
    return _envelope(status_code, exc.code, exc.message, exc.details)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the failure, answer with an opaque 500."""
    logger.error(
        "unhandled_exception",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return _envelope(
        500,
        "internal_server_error",
        "An unexpected error occurred. Please try again later.",
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the domain and fallback handlers on ``app``."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
