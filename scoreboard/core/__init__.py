"""Core infrastructure: settings, logging, exceptions."""

from .config import get_settings, settings
from .exceptions import (
    AppException,
    AuthenticationError,
    ExternalServiceError,
    InsufficientHistoryError,
    UpstreamFetchError,
    ValidationError,
)


__all__ = [
    "AppException",
    "AuthenticationError",
    "ExternalServiceError",
    "InsufficientHistoryError",
    "UpstreamFetchError",
    "ValidationError",
    "get_settings",
    "settings",
]
