"""Time source used by the rate limiter.

Injected rather than read from ``datetime.now`` directly so tests can pin
and advance time deterministically.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Interface for time sources."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        raise NotImplementedError

    def elapsed(self, since: datetime, now: datetime | None = None) -> timedelta:
        """Return the time elapsed between ``since`` and ``now``.

        Args:
            since: Earlier timestamp.
            now: Reference timestamp; defaults to ``self.now()``.

        Returns:
            Elapsed duration (negative if ``since`` lies in the future).
        """
        return (now if now is not None else self.now()) - since


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
