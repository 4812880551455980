"""Application-level exception types.

This module defines the errors raised by the limiter core, the counter store
adapters and the HTTP layer, enabling consistent handling, logging, and API
responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what is relevant to it.
    """

    code: str
    message: str
    hint: str
    key_hash: str
    operation: str
    min_seconds: float
    max_seconds: float
    actual_seconds: float
    backend: str
    cause_type: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/settings validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class ConfigurationError(AppError):
    """Raised when a limiter is constructed with an out-of-range period.

    Fatal to construction: no limiter instance is produced.
    """


@dataclass
class StoreAccessError(AppError):
    """Raised when the counter store fails to read or increment a key.

    The decision is unavailable when this is raised. Callers choose whether
    to fail open (allow) or fail closed (deny).

    Attributes:
        key: Bucket key the store was asked about.
        cause: Original exception raised by the store.
    """

    key: str = ""
    cause: BaseException | None = None
