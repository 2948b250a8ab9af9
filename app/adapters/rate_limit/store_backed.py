"""Fixed-window rate limiter backed by a shared key-value store.

Each client has one visitor record in the store holding the time of its
last admitted request and the number of requests admitted in the current
window. A window closes once more than ``interval_seconds`` have passed since
``last_seen``; the next request then starts a fresh window with count 1.

The store TTL (``cache_ttl_minutes``) only controls when dormant records are
reclaimed. It is deliberately independent of the window length and may be
longer than it.

Notes:
- Read-modify-write for one identifier runs inside a critical section from
  :mod:`app.adapters.rate_limit.locks`, so concurrent requests in this process
  cannot over-admit.
- Store failures are surfaced immediately and never retried here; the next
  request simply asks again.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.locks import AbstractKeyLock, KeyedLock
from app.adapters.rate_limit.visitor import VisitorRecord, decode_visitor, encode_visitor
from app.adapters.store.base import AbstractKeyValueStore
from app.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


def hash_identifier(identifier: str) -> str:
    """Hash a client identifier for logging without exposing it."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


class StoreFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed window per client, stored externally.

    The window for a client starts at its first request after the previous
    window expired, not at a global clock boundary.
    """

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        limit: int,
        interval_seconds: int,
        cache_ttl_minutes: int,
        clock: Clock | None = None,
        lock: AbstractKeyLock | None = None,
        key_prefix: str = "",
        operation_timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Key-value store holding visitor records.
            limit: Maximum admitted requests per window.
            interval_seconds: Window length in seconds.
            cache_ttl_minutes: Store lifetime of a visitor record.
            clock: Time source (defaults to the system clock).
            lock: Critical section provider (defaults to per-key locks).
            key_prefix: Prefix prepended to identifiers to build store keys.
            operation_timeout_seconds: Default deadline per store operation.

        Raises:
            ValueError: If limit, interval or TTL are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if interval_seconds < 1:
            raise ValueError("interval_seconds must be >= 1")
        if cache_ttl_minutes < 1:
            raise ValueError("cache_ttl_minutes must be >= 1")

        self._store = store
        self._limit = limit
        self._interval = timedelta(seconds=interval_seconds)
        self._ttl = timedelta(minutes=cache_ttl_minutes)
        self._clock = clock if clock is not None else SystemClock()
        self._lock = lock if lock is not None else KeyedLock()
        self._key_prefix = key_prefix
        self._operation_timeout = operation_timeout_seconds

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def store(self) -> AbstractKeyValueStore:
        return self._store

    @property
    def lock(self) -> AbstractKeyLock:
        return self._lock

    def _store_key(self, identifier: str) -> str:
        return f"{self._key_prefix}{identifier}"

    def _reset_at(self, last_seen: datetime) -> int:
        return int((last_seen + self._interval).timestamp())

    async def allow(self, identifier: str, *, timeout: float | None = None) -> RateLimitResult:
        """Decide admission for ``identifier`` and record it in the store.

        Args:
            identifier: Client identifier (e.g., IP address).
            timeout: Deadline in seconds for each store operation; defaults
                to the configured operation timeout.

        Returns:
            RateLimitResult with the admission decision and window metadata.

        Raises:
            ValueError: If identifier is empty.
            StoreAppError: If reading or writing the store fails.
            RecordDecodeError: If the stored record is malformed.
            RecordEncodeError: If the updated record cannot be serialized.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        deadline = timeout if timeout is not None else self._operation_timeout
        key = self._store_key(identifier)

        async with self._lock.hold(key):
            now = self._clock.now()
            payload = await self._store.get(key, timeout=deadline)
            record = decode_visitor(payload) if payload is not None else None

            if record is None or self._clock.elapsed(record.last_seen, now) > self._interval:
                updated = VisitorRecord(last_seen=now, count=1)
            elif record.count < self._limit:
                # Keep last_seen non-decreasing if the clock stepped backwards
                updated = VisitorRecord(
                    last_seen=max(record.last_seen, now),
                    count=record.count + 1,
                )
            else:
                return self._build_blocked_result(identifier, record, now)

            await self._store.set(key, encode_visitor(updated), self._ttl, timeout=deadline)

        logger.debug(
            "rate_limit.recorded",
            extra={
                "key_hash": hash_identifier(identifier),
                "count": updated.count,
                "new_window": updated.count == 1,
            },
        )
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=self._limit - updated.count,
            reset_at=self._reset_at(updated.last_seen),
            retry_after_seconds=None,
        )

    def _build_blocked_result(
        self,
        identifier: str,
        record: VisitorRecord,
        now: datetime,
    ) -> RateLimitResult:
        """Build a RateLimitResult for a rejected request."""
        remaining_window = (self._interval - self._clock.elapsed(record.last_seen, now)).total_seconds()
        # The window closes once elapsed is strictly greater than the interval
        retry_after = max(1, int(remaining_window) + 1)
        logger.debug(
            "rate_limit.blocked",
            extra={
                "key_hash": hash_identifier(identifier),
                "count": record.count,
                "retry_after_s": retry_after,
            },
        )
        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=self._reset_at(record.last_seen),
            retry_after_seconds=retry_after,
        )

    async def reset(self, identifier: str, *, timeout: float | None = None) -> None:
        """Delete the visitor record for ``identifier``.

        Raises:
            ValueError: If identifier is empty.
            StoreAppError: If the delete fails.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        deadline = timeout if timeout is not None else self._operation_timeout
        key = self._store_key(identifier)
        async with self._lock.hold(key):
            await self._store.delete(key, timeout=deadline)

        logger.info("rate_limit.reset", extra={"key_hash": hash_identifier(identifier)})
