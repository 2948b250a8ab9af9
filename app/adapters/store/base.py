"""Key-value store interface.

Contract shared by every backend:

- ``get`` returns ``None`` when the key does not exist. Absence is never
  reported as an exception, so callers do not have to inspect error text.
- Any other failure raises :class:`app.core.errors.StoreAppError`.
- Each operation accepts a ``timeout`` (seconds). ``None`` means no deadline.
  Implementations do not retry.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta


class AbstractKeyValueStore(ABC):
    """Interface for string key-value stores with per-key TTL."""

    @abstractmethod
    async def get(self, key: str, *, timeout: float | None = None) -> str | None:
        """Fetch the value stored under ``key``.

        Args:
            key: Store key.
            timeout: Deadline for the operation in seconds.

        Returns:
            The stored string, or None if the key does not exist.

        Raises:
            StoreAppError: On any failure other than a missing key.
        """
        raise NotImplementedError

    @abstractmethod
    async def set(
        self,
        key: str,
        value: str,
        ttl: timedelta,
        *,
        timeout: float | None = None,
    ) -> None:
        """Store ``value`` under ``key`` expiring after ``ttl``.

        Raises:
            StoreAppError: If the write fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str, *, timeout: float | None = None) -> None:
        """Remove ``key``. Deleting a missing key is not an error.

        Raises:
            StoreAppError: If the delete fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self, *, timeout: float | None = None) -> bool:
        """Return True when the backend is reachable."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None
