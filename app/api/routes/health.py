from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.rate_limit import get_store
from app.schemas.rate_limit import ReadinessResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational.
    Does not touch the store, so it stays green during store outages.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
async def readiness_check():
    """Readiness endpoint: reports whether the backing store answers a ping."""

    reachable = await get_store().ping(timeout=settings.cache.operation_timeout_seconds)
    if reachable:
        return ReadinessResponse(status="ok", store="ok")

    return JSONResponse(
        status_code=503,
        content=ReadinessResponse(status="unavailable", store="unreachable").model_dump(),
    )
