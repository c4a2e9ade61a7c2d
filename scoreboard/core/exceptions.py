"""Custom exceptions with structured error payloads."""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class AppException(Exception):
    """Base application exception with structured error response."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.status_code = status_code or self.status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to RFC 7807 problem+json style response."""
        return {
            "error": self.error_code,
            "message": self.message,
            "status": int(self.status_code),
            **({"details": self.details} if self.details else {}),
        }


class AuthenticationError(AppException):
    """Authentication against the market data provider failed."""

    status_code = HTTPStatus.UNAUTHORIZED
    error_code = "AUTHENTICATION_FAILED"
    message = "Authentication required"


class ValidationError(AppException):
    """Validation failed."""

    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"
    message = "Validation failed"


class ExternalServiceError(AppException):
    """External service error."""

    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    error_code = "EXTERNAL_SERVICE_ERROR"
    message = "External service temporarily unavailable"


class UpstreamFetchError(ExternalServiceError):
    """Calendar or quotes endpoint returned a non-success response."""

    status_code = HTTPStatus.BAD_GATEWAY
    error_code = "UPSTREAM_FETCH_FAILED"
    message = "Market data request failed"


class InsufficientHistoryError(AppException):
    """A code's bar history is shorter than the factor windows require.

    Raised by single-code factor helpers; the metrics engine treats it as
    a silent exclusion rather than a failure.
    """

    status_code = HTTPStatus.UNPROCESSABLE_ENTITY
    error_code = "INSUFFICIENT_HISTORY"
    message = "Not enough bars to compute factors"
