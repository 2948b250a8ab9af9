from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from app.core.auth import verify_api_key
from app.core.rate_limit import get_rate_limiter

router = APIRouter(tags=["Admin"])


@router.delete(
    "/visitors/{identifier}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(verify_api_key)],
)
async def reset_visitor(identifier: str) -> Response:
    """Clear the stored counter for a client so its next request starts a new window.

    Clearing a client that has no record is a no-op.

    Raises:
        HTTPException: 403 without a valid admin API key.
        StoreAppError: Rendered as 500 when the store is unreachable.
    """
    await get_rate_limiter().reset(identifier)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
