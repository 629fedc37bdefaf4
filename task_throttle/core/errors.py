"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Client-visible error context; every field is optional."""

    retry_after: int
    backend: str
    operation: str


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
    """Raised when input/config validation fails."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a client exceeded the request budget of its window.

    Attributes:
        headers: Response headers (Retry-After, X-RateLimit-*) for the 429.
    """

    headers: dict[str, str] = field(default_factory=dict)


class StoreUnavailableError(AppError):
    """Raised when the shared counter store cannot be reached or errors."""
