"""J-Quants market data provider integration."""

from scoreboard.services.jquants.auth import TokenProvider, redact_refresh_token
from scoreboard.services.jquants.client import JQuantsClient
from scoreboard.services.jquants.resilience import RetryExhaustedError, RetryPolicy

__all__ = [
    "JQuantsClient",
    "RetryExhaustedError",
    "RetryPolicy",
    "TokenProvider",
    "redact_refresh_token",
]
