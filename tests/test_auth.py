"""Unit tests for admin API key authentication."""

from unittest.mock import patch

import pytest
from fastapi import HTTPException

from app.core.auth import parse_api_keys, validate_api_key, verify_api_key
from app.core.errors import AuthenticationAppError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("ops-key", {"ops-key"}),
        ("ops-key,oncall-key", {"ops-key", "oncall-key"}),
        (" ops-key , oncall-key ", {"ops-key", "oncall-key"}),
        ("ops-key,ops-key", {"ops-key"}),
        (None, set()),
        ("", set()),
        ("  ,  , ", set()),
    ],
)
def test_parse_api_keys(raw, expected) -> None:
    assert parse_api_keys(raw) == expected


@pytest.fixture
def auth_settings():
    with patch("app.core.auth.settings") as mock_settings:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "ops-key,oncall-key"
        yield mock_settings


class TestValidateAPIKey:
    def test_accepts_each_configured_key(self, auth_settings) -> None:
        validate_api_key("ops-key")
        validate_api_key("oncall-key")

    def test_rejects_unknown_key(self, auth_settings) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("guess")

        assert exc_info.value.code == "invalid_api_key"

    def test_configured_keys_are_trimmed_but_provided_key_is_not(self, auth_settings) -> None:
        auth_settings.app.api_keys = " ops-key , oncall-key "

        validate_api_key("ops-key")
        with pytest.raises(AuthenticationAppError):
            validate_api_key(" ops-key ")

    @pytest.mark.parametrize("configured", [None, "", " , "])
    def test_required_without_keys_is_a_configuration_error(self, auth_settings, configured) -> None:
        auth_settings.app.api_keys = configured

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("ops-key")

        assert exc_info.value.code == "api_keys_not_configured"
        assert "APP_API_KEYS" in exc_info.value.details["hint"]

    def test_bypassed_when_not_required(self, auth_settings) -> None:
        auth_settings.app.api_key_required = False

        validate_api_key("")


class TestVerifyAPIKeyDependency:
    @pytest.mark.asyncio
    async def test_missing_header_is_403(self, auth_settings) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key=None)

        assert exc_info.value.status_code == 403
        assert "X-API-Key" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_wrong_key_is_403(self, auth_settings) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key="guess")

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Invalid or missing API key"

    @pytest.mark.asyncio
    async def test_unconfigured_keys_is_403(self, auth_settings) -> None:
        auth_settings.app.api_keys = None

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key="ops-key")

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_valid_key_passes(self, auth_settings) -> None:
        assert await verify_api_key(x_api_key="oncall-key") is None

    @pytest.mark.asyncio
    async def test_no_header_needed_when_auth_disabled(self, auth_settings) -> None:
        auth_settings.app.api_key_required = False

        assert await verify_api_key(x_api_key=None) is None
