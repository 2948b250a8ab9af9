"""Visitor record and its store payload codec.

The payload is a JSON object with ``LastSeen`` (RFC 3339 timestamp) and
``Count`` keys, so records written by other rate limiter instances sharing
the same store decode unchanged.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.errors import RecordDecodeError, RecordEncodeError


class VisitorRecord(BaseModel):
    """Counter state for one client within its current window."""

    last_seen: datetime = Field(alias="LastSeen")
    count: int = Field(alias="Count", ge=1)

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("last_seen")
    @classmethod
    def _require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("LastSeen must carry a timezone offset")
        return value


def encode_visitor(record: VisitorRecord) -> str:
    """Serialize a visitor record to its store payload.

    Raises:
        RecordEncodeError: If the record is not serializable (e.g. a naive
            timestamp was forced in with ``model_construct``).
    """

    if record.last_seen.tzinfo is None or record.count < 1:
        raise RecordEncodeError(
            code="visitor_record_unencodable",
            message="Visitor record must have an aware timestamp and a positive count",
        )
    try:
        return record.model_dump_json(by_alias=True)
    except (TypeError, ValueError) as exc:
        raise RecordEncodeError(
            code="visitor_record_unencodable",
            message=f"Visitor record could not be serialized: {exc}",
        ) from exc


def decode_visitor(payload: str | bytes) -> VisitorRecord:
    """Parse a store payload into a visitor record.

    Raises:
        RecordDecodeError: If the payload is not a valid visitor record. The
            payload itself is not included in the error.
    """

    try:
        return VisitorRecord.model_validate_json(payload)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in exc.errors()
        )
        raise RecordDecodeError(
            code="visitor_record_corrupt",
            message=f"Stored visitor record is malformed ({problems})",
            details={"error_type": type(exc).__name__},
        ) from exc
