"""Factory pattern for creating key-value store instances."""

from app.adapters.store.base import AbstractKeyValueStore
from app.adapters.store.in_memory import InMemoryKeyValueStore
from app.adapters.store.redis_store import RedisKeyValueStore
from app.core.config import CacheSettings, settings
from app.core.errors import ValidationAppError


def create_store(cache_settings: CacheSettings | None = None) -> AbstractKeyValueStore:
    """Factory function to instantiate the configured store backend.

    Args:
        cache_settings: Cache configuration; defaults to global settings.

    Returns:
        AbstractKeyValueStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown.
    """
    cfg = cache_settings or settings.cache
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisKeyValueStore.from_settings(cfg)

    if backend == "memory":
        return InMemoryKeyValueStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: redis, memory",
    )
