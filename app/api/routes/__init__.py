from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.rate_limiter import router as rate_limiter_router
from app.api.routes.visitors import router as visitors_router

__all__ = ["health_router", "rate_limiter_router", "visitors_router"]
