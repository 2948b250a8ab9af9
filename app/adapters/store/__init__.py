"""Key-value store adapters.

The rate limiter depends on the abstract store only, so Redis can be
replaced by another backend (or the in-memory store in tests) without
touching the decision logic.
"""

from app.adapters.store.base import AbstractKeyValueStore
from app.adapters.store.factory import create_store

__all__ = ["AbstractKeyValueStore", "create_store"]
