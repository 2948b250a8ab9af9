"""Pydantic schemas for rate limiter responses."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class AdmissionResponse(BaseModel):
    """Body returned when a request is admitted."""

    message: str = Field(
        "Request allowed",
        description="Human-readable outcome.",
    )
    limit: int | None = Field(
        None,
        description="Maximum admitted requests per window (null when limiting is disabled).",
    )
    remaining: int | None = Field(
        None,
        description="Admissions left in the current window.",
    )
    reset_at: int | None = Field(
        None,
        description="UNIX epoch seconds when the current window closes.",
    )


class ReadinessResponse(BaseModel):
    """Readiness probe result."""

    status: Literal["ok", "unavailable"]
    store: Literal["ok", "unreachable"]
