"""Pydantic schemas for operation quota responses."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class OperationCheckResponse(BaseModel):
    """Decision returned for a single operation quota check."""

    operation: str = Field(
        ..., description="Operation name as provided in the request path."
    )
    exceeded: bool = Field(
        ...,
        description=(
            "True when the quota for the current window was already used up. "
            "False means the attempt was recorded and may proceed."
        ),
    )
    limit: int = Field(
        ..., description="Maximum number of operations allowed per window."
    )
    period_seconds: float = Field(
        ..., description="Window length in seconds."
    )
    retry_after_seconds: int | None = Field(
        default=None,
        description="Seconds until the current window rolls over (only when exceeded).",
    )


class LimiterConfigResponse(BaseModel):
    """Active limiter configuration."""

    enabled: bool = Field(..., description="Whether gated routes are rate limited.")
    limit: int = Field(..., description="Maximum number of operations per window.")
    period_seconds: float = Field(..., description="Window length in seconds.")
    bucket_mode: Literal["epoch", "cyclic"] = Field(
        ..., description="How window bucket identifiers are derived."
    )
    strict: bool = Field(
        ..., description="Whether increments use the store's atomic increment-and-get."
    )
    fail_open: bool = Field(
        ..., description="Whether requests are allowed when the counter store fails."
    )
    store_backend: str = Field(..., description="Configured counter store backend.")
