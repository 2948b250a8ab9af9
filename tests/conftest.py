"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any app import so the global settings
use an in-memory store and a known policy.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["CONFIG_FILE"] = os.path.join(os.path.dirname(__file__), "_no_config_file.yaml")

os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_LIMIT", "3")
os.environ.setdefault("RATE_LIMIT_INTERVAL_SECONDS", "30")
os.environ.setdefault("CACHE_TTL_MINUTES", "5")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")

from app.utils.clock import Clock  # noqa: E402


class FakeClock(Clock):
    """Deterministic clock used to test window expiry."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 1, 27, 18, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
