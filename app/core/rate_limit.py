"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer. It owns no
rate limiting logic itself; it only:

- extracts the client identifier from the request (forwarding header first,
  then the transport peer address),
- calls the limiter,
- maps the outcome to HTTP: admitted passes through, rejected raises 429,
  limiter failures propagate as AppError and are rendered as 500 by the
  global exception handlers.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.locks import create_key_lock
from app.adapters.rate_limit.store_backed import StoreFixedWindowRateLimiter, hash_identifier
from app.adapters.store.base import AbstractKeyValueStore
from app.adapters.store.factory import create_store
from app.core.config import settings
from app.core.errors import AppError

logger = logging.getLogger(__name__)


_limiter: AbstractRateLimiter | None = None
_store: AbstractKeyValueStore | None = None


def get_store() -> AbstractKeyValueStore:
    """Return the process-wide key-value store, creating it on first use."""

    global _store

    if _store is None:
        _store = create_store(settings.cache)
    return _store


def get_rate_limiter() -> AbstractRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module so every request shares the same lock
    table and store connection pool.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    global _limiter

    if _limiter is None:
        _limiter = StoreFixedWindowRateLimiter(
            get_store(),
            limit=settings.rate_limit.limit,
            interval_seconds=settings.rate_limit.interval_seconds,
            cache_ttl_minutes=settings.cache.ttl_minutes,
            lock=create_key_lock(settings.rate_limit.lock_scope),
            key_prefix=settings.rate_limit.key_prefix,
            operation_timeout_seconds=settings.cache.operation_timeout_seconds,
        )
    return _limiter


async def close_rate_limiter() -> None:
    """Close the store connection pool and drop cached instances."""

    global _limiter, _store

    if _store is not None:
        await _store.close()
    _store = None
    _limiter = None


def get_client_identifier(request: Request) -> str:
    """Extract the client identifier for the current request.

    Uses the configured forwarding header when present: its first address
    (the client when behind proxies) with ``RATE_LIMIT_FORWARDED_HOP=first``,
    or the header value verbatim with ``raw``. Falls back to the peer address.

    Args:
        request: FastAPI request.

    Returns:
        str: Client identifier, ``"unknown"`` if none is available.
    """

    forwarded = request.headers.get(settings.rate_limit.forwarded_header)
    if forwarded and settings.rate_limit.forwarded_hop == "raw":
        return forwarded
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return request.client.host if request.client else "unknown"


def build_rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build X-RateLimit-* (and Retry-After when blocked) headers."""

    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


async def enforce_rate_limit(request: Request) -> RateLimitResult | None:
    """FastAPI dependency enforcing rate limits.

    When enabled, records one request against the client's budget. If the
    client exceeded the configured rate, raises HTTP 429.

    Args:
        request: FastAPI request.

    Returns:
        RateLimitResult for admitted requests, None when rate limiting is
        disabled.

    Raises:
        HTTPException: 429 Too Many Requests when rate limit is exceeded.
        AppError: When the limiter cannot decide (store or record failure).
    """

    if not settings.rate_limit.enabled:
        return None

    limiter = get_rate_limiter()
    identifier = get_client_identifier(request)
    key_hash = hash_identifier(identifier)

    try:
        result = await limiter.allow(identifier)
    except AppError as exc:
        logger.error(
            "rate_limit.store_error",
            extra={
                "key_hash": key_hash,
                "error_code": exc.code,
                "error_type": type(exc).__name__,
            },
        )
        raise

    if result.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
                "window_s": settings.rate_limit.interval_seconds,
            },
        )
        return result

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "limit": result.limit,
            "remaining": result.remaining,
            "window_s": settings.rate_limit.interval_seconds,
            "retry_after_s": result.retry_after_seconds,
        },
    )

    headers = build_rate_limit_headers(result) if settings.rate_limit.include_headers else None

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="rate limit exceeded",
        headers=headers,
    )
