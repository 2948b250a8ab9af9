"""In-memory TTL store.

Notes:
- Per-process only: running multiple workers gives each its own counters.
- Useful for local development and tests; production uses Redis.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from app.adapters.store.base import AbstractKeyValueStore

logger = logging.getLogger(__name__)

# Expired entries examined per write
SWEEP_LIMIT = 32


@dataclass
class StoreItem:
    """Container for stored values with expiration metadata."""

    value: str
    expires_at: float


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dict-backed store honouring per-key TTLs.

    All operations run on the event loop without awaiting, so they are atomic
    with respect to other coroutines; ``timeout`` is accepted for interface
    compatibility and has nothing to bound.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._store: dict[str, StoreItem] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryKeyValueStore(size={len(self._store)})"

    async def get(self, key: str, *, timeout: float | None = None) -> str | None:
        item = self._store.get(key)
        if item is None:
            return None

        if self._is_expired(item):
            self._store.pop(key, None)
            logger.debug("store.expired", extra={"store_key_len": len(key)})
            return None

        return item.value

    async def set(
        self,
        key: str,
        value: str,
        ttl: timedelta,
        *,
        timeout: float | None = None,
    ) -> None:
        self._evict_expired()
        # Re-insert so dict order follows write time
        self._store.pop(key, None)
        self._store[key] = StoreItem(
            value=value,
            expires_at=self._clock() + ttl.total_seconds(),
        )

    async def delete(self, key: str, *, timeout: float | None = None) -> None:
        self._store.pop(key, None)

    async def ping(self, *, timeout: float | None = None) -> bool:
        return True

    async def close(self) -> None:
        self._store.clear()

    def _evict_expired(self) -> None:
        """Drop expired entries from the oldest end, at most ``SWEEP_LIMIT``.

        Stops at the first live entry. Entries behind it that expired earlier
        (shorter TTL) are left for a later sweep or for ``get``.
        """
        now = self._clock()
        expired_keys = []
        for key, item in self._store.items():
            if len(expired_keys) >= SWEEP_LIMIT or item.expires_at > now:
                break
            expired_keys.append(key)
        for key in expired_keys:
            del self._store[key]

    def _is_expired(self, item: StoreItem) -> bool:
        return self._clock() >= item.expires_at
