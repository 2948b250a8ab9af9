"""Request correlation middleware.

Every request gets a correlation id: the incoming ``LOG_REQUEST_ID_HEADER``
value (``X-Request-ID`` by default) or a fresh UUID4. The id lives in a
context variable for the duration of the request, so limiter and store log
lines carry it, and is echoed back on the response together with the
handling time.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

DURATION_HEADER = "X-Request-Duration-ms"


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a correlation id to the request and report its duration.

    Emits one ``http.request`` log line per request; 429 and 5xx outcomes are
    logged at WARNING so rejections are visible without debug logging.
    """

    id_header = settings.log.request_id_header
    correlation_id = request.headers.get(id_header) or str(uuid.uuid4())
    set_request_id(correlation_id)

    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code == 429 or response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[id_header] = correlation_id
    response.headers.setdefault(DURATION_HEADER, f"{elapsed_ms:.2f}")
    return response
