"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers,
store lifecycle) to improve testability.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import health_router, rate_limiter_router, visitors_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import close_rate_limiter, get_rate_limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: build the limiter. Shutdown: close the store connection pool."""
    get_rate_limiter()
    logger.info(
        "app.startup",
        extra={
            "store_backend": settings.cache.backend,
            "limit": settings.rate_limit.limit,
            "window_s": settings.rate_limit.interval_seconds,
            "record_ttl_min": settings.cache.ttl_minutes,
            "lock_scope": settings.rate_limit.lock_scope,
        },
    )
    yield
    await close_rate_limiter()
    logger.info("app.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Visitor Rate Limiter",
        description=(
            "Fixed-window rate limiter keyed by client address. Visitor "
            "counters live in Redis, or in process memory for local runs."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(rate_limiter_router)
    app.include_router(visitors_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
