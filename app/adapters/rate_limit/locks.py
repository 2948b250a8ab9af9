"""Critical sections for the read-modify-write on visitor records.

Two concurrent requests for the same client must not both read the same
count and both write ``count + 1``. Both lock types below serialize the
fetch-decide-store sequence; they differ in what else they serialize:

- ``KeyedLock``: one ``asyncio.Lock`` per identifier. Requests for different
  clients never wait on each other. The table only holds entries for keys
  with a holder or waiter, so memory tracks concurrency, not cardinality.
- ``GlobalLock``: a single lock for every identifier. Simple and correct, but
  all admissions in the process queue behind each store round trip. Fine for
  small deployments; throughput drops with store latency.

Both are process local. Several service processes sharing one store are not
serialized against each other.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator


class AbstractKeyLock(ABC):
    """Yields an exclusive critical section scoped to a key."""

    @abstractmethod
    def hold(self, key: str) -> AbstractAsyncContextManager[None]:
        """Return an async context manager holding the lock for ``key``."""
        raise NotImplementedError


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLock(AbstractKeyLock):
    """Per-key asyncio locks with reference counting."""

    def __init__(self) -> None:
        self._entries: dict[str, _LockEntry] = {}

    @property
    def active_keys(self) -> int:
        """Number of keys with a current holder or waiter."""
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)


class GlobalLock(AbstractKeyLock):
    """One lock shared by all keys."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        async with self._lock:
            yield


def create_key_lock(scope: str) -> AbstractKeyLock:
    """Build the lock for a configured scope (``per_key`` or ``global``)."""

    if scope == "global":
        return GlobalLock()
    if scope == "per_key":
        return KeyedLock()
    raise ValueError(f"Unknown lock scope: {scope!r}")
