"""Tests for the HTTP surface: admission, rejection, failures and admin reset.

The process-wide limiter is replaced with one using an in-memory store and a
fake clock, so no Redis server is needed.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.locks import GlobalLock, KeyedLock
from app.adapters.rate_limit.store_backed import StoreFixedWindowRateLimiter
from app.adapters.store.base import AbstractKeyValueStore
from app.adapters.store.in_memory import InMemoryKeyValueStore
from app.core import rate_limit
from app.core.app_factory import create_app
from app.core.config import settings
from app.core.errors import StoreAppError
from tests.conftest import FakeClock

ADMIN_HEADERS = {"X-API-Key": "test-api-key-123"}


def _install_limiter(monkeypatch: pytest.MonkeyPatch, store: AbstractKeyValueStore, clock: FakeClock) -> StoreFixedWindowRateLimiter:
    limiter = StoreFixedWindowRateLimiter(
        store,
        limit=3,
        interval_seconds=30,
        cache_ttl_minutes=5,
        clock=clock,
    )
    monkeypatch.setattr(rate_limit, "_store", store)
    monkeypatch.setattr(rate_limit, "_limiter", limiter)
    return limiter


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore, clock: FakeClock) -> TestClient:
    _install_limiter(monkeypatch, store, clock)
    return TestClient(create_app(), raise_server_exceptions=False)


class TestAdmission:
    def test_admits_until_limit_then_429(self, client: TestClient) -> None:
        for remaining in (2, 1, 0):
            response = client.get("/rate-limiter")
            assert response.status_code == 200
            body = response.json()
            assert body["message"] == "Request allowed"
            assert body["limit"] == 3
            assert body["remaining"] == remaining
            assert response.headers["X-RateLimit-Remaining"] == str(remaining)

        response = client.get("/rate-limiter")
        assert response.status_code == 429
        assert response.json()["detail"] == "rate limit exceeded"
        assert int(response.headers["Retry-After"]) >= 1
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_new_window_after_interval(self, client: TestClient, clock: FakeClock) -> None:
        for _ in range(3):
            client.get("/rate-limiter")
        assert client.get("/rate-limiter").status_code == 429

        clock.advance(31)

        assert client.get("/rate-limiter").status_code == 200

    def test_forwarded_header_identifies_client(self, client: TestClient, store: InMemoryKeyValueStore) -> None:
        for _ in range(3):
            client.get("/rate-limiter", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

        blocked = client.get("/rate-limiter", headers={"X-Forwarded-For": "203.0.113.7"})
        other = client.get("/rate-limiter", headers={"X-Forwarded-For": "198.51.100.2"})
        direct = client.get("/rate-limiter")

        assert blocked.status_code == 429
        assert other.status_code == 200
        assert direct.status_code == 200
        assert "203.0.113.7" in store._store
        assert "testclient" in store._store

    def test_raw_forwarded_value_keys_multi_hop_clients(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore
    ) -> None:
        monkeypatch.setattr(settings.rate_limit, "forwarded_hop", "raw")

        client.get("/rate-limiter", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

        assert list(store._store) == ["203.0.113.7, 10.0.0.1"]

    def test_headers_can_be_disabled(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "include_headers", False)

        response = client.get("/rate-limiter")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers

        for _ in range(3):
            response = client.get("/rate-limiter")
        assert response.status_code == 429
        assert "Retry-After" not in response.headers

    def test_disabled_limiting_admits_everything(self, client: TestClient, monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore) -> None:
        monkeypatch.setattr(settings.rate_limit, "enabled", False)

        for _ in range(10):
            response = client.get("/rate-limiter")
            assert response.status_code == 200
            assert response.json()["limit"] is None

        assert store._store == {}


@pytest.mark.parametrize(("scope", "lock_cls"), [("global", GlobalLock), ("per_key", KeyedLock)])
def test_configured_lock_scope_reaches_limiter(monkeypatch: pytest.MonkeyPatch, scope: str, lock_cls) -> None:
    monkeypatch.setattr(rate_limit, "_limiter", None)
    monkeypatch.setattr(rate_limit, "_store", InMemoryKeyValueStore())
    monkeypatch.setattr(settings.rate_limit, "lock_scope", scope)

    limiter = rate_limit.get_rate_limiter()

    assert isinstance(limiter.lock, lock_cls)


class TestFailures:
    @pytest.fixture
    def failing_store(self) -> AsyncMock:
        return AsyncMock(spec=AbstractKeyValueStore)

    @pytest.fixture
    def failing_client(self, monkeypatch: pytest.MonkeyPatch, failing_store: AsyncMock, clock: FakeClock) -> TestClient:
        _install_limiter(monkeypatch, failing_store, clock)
        return TestClient(create_app(), raise_server_exceptions=False)

    def test_store_error_is_500_not_429(self, failing_client: TestClient, failing_store: AsyncMock) -> None:
        failing_store.get.side_effect = StoreAppError(
            code="store_unavailable",
            message="Store unavailable during get",
            details={"operation": "get", "backend": "redis"},
        )

        response = failing_client.get("/rate-limiter")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "store_unavailable"
        assert "details" not in error
        assert "request_id" in error
        failing_store.set.assert_not_awaited()

    def test_corrupt_record_is_500(self, failing_client: TestClient, failing_store: AsyncMock) -> None:
        failing_store.get.return_value = '{"LastSeen":"2025-01-27T18:00:02Z","Count":}'

        response = failing_client.get("/rate-limiter")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "visitor_record_corrupt"

    def test_unexpected_error_is_generic_500(self, failing_client: TestClient, failing_store: AsyncMock) -> None:
        failing_store.get.side_effect = RuntimeError("driver bug")

        response = failing_client.get("/rate-limiter")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "driver bug" not in response.text


class TestAdminReset:
    def test_reset_requires_api_key(self, client: TestClient) -> None:
        assert client.delete("/v1/visitors/testclient").status_code == 403
        assert client.delete("/v1/visitors/testclient", headers={"X-API-Key": "nope"}).status_code == 403

    def test_reset_clears_counter(self, client: TestClient) -> None:
        for _ in range(3):
            client.get("/rate-limiter")
        assert client.get("/rate-limiter").status_code == 429

        response = client.delete("/v1/visitors/testclient", headers=ADMIN_HEADERS)

        assert response.status_code == 204
        assert client.get("/rate-limiter").status_code == 200

    def test_reset_unknown_visitor_is_noop(self, client: TestClient) -> None:
        response = client.delete("/v1/visitors/198.51.100.9", headers=ADMIN_HEADERS)

        assert response.status_code == 204


class TestHealth:
    def test_liveness(self, client: TestClient) -> None:
        assert client.get("/health").json() == {"status": "ok"}

    def test_readiness_ok(self, client: TestClient) -> None:
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "store": "ok"}

    def test_readiness_store_down(self, monkeypatch: pytest.MonkeyPatch, clock: FakeClock) -> None:
        store = AsyncMock(spec=AbstractKeyValueStore)
        store.ping.return_value = False
        _install_limiter(monkeypatch, store, clock)
        client = TestClient(create_app())

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["store"] == "unreachable"

    def test_openapi_marks_only_admin_routes_secured(self, client: TestClient) -> None:
        schema = client.get("/openapi.json").json()

        assert schema["paths"]["/v1/visitors/{identifier}"]["delete"]["security"] == [{"ApiKeyAuth": []}]
        assert "security" not in schema["paths"]["/rate-limiter"]["get"]
        assert "ApiKeyAuth" in schema["components"]["securitySchemes"]
