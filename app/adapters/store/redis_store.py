"""Redis key-value store adapter.

Uses the ``redis.asyncio`` client with a shared connection pool. Redis
failures are classified into :class:`StoreAppError` codes so callers never
have to sniff error strings:

- ``store_timeout``: the operation exceeded its deadline
- ``store_unavailable``: the connection could not be established or was lost
- ``store_error``: any other Redis error
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Awaitable, TypeVar

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.adapters.store.base import AbstractKeyValueStore
from app.core.config import CacheSettings
from app.core.errors import StoreAppError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def classify_store_error(
    exc: BaseException,
    *,
    operation: str,
    timeout: float | None,
) -> StoreAppError:
    """Translate a client exception into a StoreAppError.

    Args:
        exc: Exception raised by the Redis client or by the deadline.
        operation: Store operation name (get, set, delete, ping).
        timeout: Deadline that applied to the operation.

    Returns:
        StoreAppError with a stable code and structured details.
    """

    if isinstance(exc, (asyncio.TimeoutError, RedisTimeoutError)):
        code = "store_timeout"
        message = f"Store {operation} timed out"
    elif isinstance(exc, RedisConnectionError):
        code = "store_unavailable"
        message = f"Store unavailable during {operation}"
    else:
        code = "store_error"
        message = f"Store {operation} failed: {exc}"

    details: dict[str, Any] = {
        "operation": operation,
        "backend": "redis",
        "error_type": type(exc).__name__,
    }
    if timeout is not None:
        details["timeout_seconds"] = timeout

    return StoreAppError(code=code, message=message, details=details)  # type: ignore[arg-type]


class RedisKeyValueStore(AbstractKeyValueStore):
    """Store backed by a Redis server.

    Missing keys come back from ``GET`` as ``None`` and are passed through as
    such; they never raise.
    """

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, cache_settings: CacheSettings) -> "RedisKeyValueStore":
        """Create a store with its own connection pool from cache settings."""

        if cache_settings.url:
            client = aioredis.from_url(
                cache_settings.url,
                password=cache_settings.password,
                decode_responses=True,
            )
        else:
            client = aioredis.Redis(
                host=cache_settings.host,
                port=cache_settings.port,
                db=cache_settings.db,
                password=cache_settings.password,
                decode_responses=True,
            )
        return cls(client)

    async def _run(self, operation: str, call: Awaitable[T], timeout: float | None) -> T:
        try:
            if timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout=timeout)
        except (asyncio.TimeoutError, RedisError) as exc:
            error = classify_store_error(exc, operation=operation, timeout=timeout)
            logger.warning(
                f"store.{operation}_failed",
                extra={
                    "error_code": error.code,
                    "error_type": type(exc).__name__,
                    "timeout_seconds": timeout,
                },
            )
            raise error from exc

    async def get(self, key: str, *, timeout: float | None = None) -> str | None:
        value = await self._run("get", self._client.get(key), timeout)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(
        self,
        key: str,
        value: str,
        ttl: timedelta,
        *,
        timeout: float | None = None,
    ) -> None:
        await self._run("set", self._client.set(key, value, ex=ttl), timeout)

    async def delete(self, key: str, *, timeout: float | None = None) -> None:
        await self._run("delete", self._client.delete(key), timeout)

    async def ping(self, *, timeout: float | None = None) -> bool:
        try:
            return bool(await self._run("ping", self._client.ping(), timeout))
        except StoreAppError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
