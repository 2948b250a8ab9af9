"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
HTTP layer stays unchanged whichever store backs the counters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission decision.

    Attributes:
        allowed: Whether the request is admitted.
        limit: Max admitted requests per window.
        remaining: Remaining admissions in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window closes.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def allow(self, identifier: str, *, timeout: float | None = None) -> RateLimitResult:
        """Decide whether a request from ``identifier`` is admitted.

        Args:
            identifier: Client identifier (e.g., IP address).
            timeout: Deadline in seconds for each backing-store operation.

        Returns:
            RateLimitResult describing whether it was allowed.

        Raises:
            AppError: When the decision could not be made (store or codec
                failure). Never raised for a plain rejection.
        """
        raise NotImplementedError

    @abstractmethod
    async def reset(self, identifier: str, *, timeout: float | None = None) -> None:
        """Forget all recorded requests for ``identifier``."""
        raise NotImplementedError
