"""Admin API key check.

Only operator endpoints (clearing a visitor's counter) are protected; the
rate-limited endpoint is public. Accepted keys come from ``APP_API_KEYS`` as
a comma-separated list, and the whole check is skipped when
``APP_API_KEY_REQUIRED=false``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header, HTTPException, status

from app.core.config import settings
from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Split a comma-separated key list, dropping blanks and duplicates.

    >>> sorted(parse_api_keys(" ops , oncall ,, ops"))
    ['oncall', 'ops']
    """
    if not keys_string:
        return set()
    return {part.strip() for part in keys_string.split(",")} - {""}


def _fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str) -> None:
    """Raise ``AuthenticationAppError`` unless ``provided_key`` is accepted.

    Raises:
        AuthenticationAppError: ``api_keys_not_configured`` when auth is on
            but no key is configured, ``invalid_api_key`` on mismatch.
    """
    if not settings.app.api_key_required:
        return

    accepted = parse_api_keys(settings.app.api_keys)
    if not accepted:
        logger.error("auth.misconfigured", extra={"reason": "api_keys_not_configured"})
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    # Compare against every key so timing does not reveal which one matched
    matches = [hmac.compare_digest(provided_key.encode(), key.encode()) for key in accepted]
    if not any(matches):
        logger.warning(
            "auth.rejected",
            extra={"reason": "invalid_api_key", "key_fingerprint": _fingerprint(provided_key)},
        )
        raise AuthenticationAppError(code="invalid_api_key", message="Invalid or missing API key")


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias=API_KEY_HEADER)] = None,
) -> None:
    """Dependency guarding admin routes; any failure is a 403."""
    if not settings.app.api_key_required:
        return

    if not x_api_key:
        logger.warning("auth.rejected", extra={"reason": "missing_key"})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing API key. Provide {API_KEY_HEADER} header.",
        )

    try:
        validate_api_key(x_api_key)
    except AuthenticationAppError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message) from exc

    logger.info("auth.accepted", extra={"key_fingerprint": _fingerprint(x_api_key)})
