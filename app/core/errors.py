"""Domain error taxonomy.

A missing visitor record is not an error: stores return ``None`` for absent
keys. Everything else that goes wrong while deciding admission surfaces as
one of the classes below and ends up as a server error at the HTTP boundary,
never as a rate-limit rejection.

    AppError
    ├── ValidationAppError       bad input or configuration (400)
    ├── AuthenticationAppError   admin key problems (403)
    ├── StoreAppError            store I/O, timeout, connectivity (500)
    └── RateLimitStateError      visitor record conversion (500)
        ├── RecordDecodeError
        └── RecordEncodeError
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Optional structured context attached to an error."""

    hint: str
    operation: str
    backend: str
    timeout_seconds: float
    error_type: str
    errors: list[dict[str, Any]]
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base class carrying a stable ``code``, a readable ``message`` and ``details``."""

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # str(error) should read like a normal exception in tracebacks
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Invalid input or configuration."""


class AuthenticationAppError(AppError):
    """Missing, wrong or unconfigured admin API key."""


class StoreAppError(AppError):
    """Key-value store call failed; ``code`` tells unavailable, timeout or other."""


class RateLimitStateError(AppError):
    """A visitor record could not be converted to or from its stored payload."""


class RecordDecodeError(RateLimitStateError):
    """Stored value for an existing key is malformed."""


class RecordEncodeError(RateLimitStateError):
    """In-memory visitor record cannot be serialized."""
