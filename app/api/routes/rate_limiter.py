from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from app.adapters.rate_limit.base import RateLimitResult
from app.core.config import settings
from app.core.rate_limit import build_rate_limit_headers, enforce_rate_limit
from app.schemas.rate_limit import AdmissionResponse

router = APIRouter(tags=["RateLimiter"])


@router.get(
    "/rate-limiter",
    response_model=AdmissionResponse,
    responses={
        429: {"description": "Rate limit exceeded for this client"},
        500: {"description": "The limiter could not reach or read its store"},
    },
)
async def check_rate_limit(
    response: Response,
    result: Annotated[RateLimitResult | None, Depends(enforce_rate_limit)],
) -> AdmissionResponse:
    """Admit the request if the client is within its quota.

    The client is identified by the first ``X-Forwarded-For`` address, or by
    the peer address when the header is absent.

    Returns:
        AdmissionResponse: 200 with window metadata when admitted. Rejections
            (429) and limiter failures (500) are raised by the dependency.
    """
    if result is None:
        return AdmissionResponse()

    if settings.rate_limit.include_headers:
        response.headers.update(build_rate_limit_headers(result))

    return AdmissionResponse(
        limit=result.limit,
        remaining=result.remaining,
        reset_at=result.reset_at,
    )
