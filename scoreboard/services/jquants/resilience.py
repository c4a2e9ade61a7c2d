"""
Retry-with-timeout policy for calls against the market data provider.

Each attempt runs under ``asyncio.wait_for`` so a hung request is cancelled
rather than left in flight. Only transient failures are retried; anything
else propagates from the first attempt.

Usage:
    from scoreboard.services.jquants.resilience import RetryPolicy

    policy = RetryPolicy(attempts=3, timeout=10.0, backoff=0.3)
    response = await policy.run(lambda: client.post(url), label="auth_refresh")
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from scoreboard.core.logging import get_logger

logger = get_logger("jquants.resilience")

T = TypeVar("T")


# Exceptions that should trigger a retry
TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    httpx.TransportError,
    asyncio.TimeoutError,
    ConnectionError,
)


class RetryExhaustedError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, attempts: int, last_error: BaseException | None = None):
        self.attempts = attempts
        self.last_error = last_error
        message = f"All {attempts} retry attempts exhausted"
        if last_error:
            message += f": {last_error!r}"
        super().__init__(message)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with a per-attempt timeout and linear backoff.

    Args:
        attempts: Total attempts including the first (>= 1)
        timeout: Seconds allowed per attempt
        backoff: Delay step; the wait after attempt N is ``backoff * N``
        retry_on: Exception types treated as transient
    """

    attempts: int = 3
    timeout: float = 10.0
    backoff: float = 0.3
    retry_on: tuple[type[BaseException], ...] = TRANSIENT_EXCEPTIONS

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (1-based)."""
        return self.backoff * attempt

    async def run(
        self,
        func: Callable[[], Awaitable[T]],
        label: str = "call",
        describe: Callable[[], str] | None = None,
    ) -> T:
        """
        Run ``func`` until it succeeds or attempts are exhausted.

        Args:
            func: Zero-argument coroutine factory, called once per attempt
            label: Name used in log lines
            describe: Optional callable producing extra (already redacted)
                context for failure logs

        Returns:
            The first successful result

        Raises:
            RetryExhaustedError: every attempt failed with a transient error
        """
        last_error: BaseException | None = None

        for attempt in range(1, self.attempts + 1):
            try:
                return await asyncio.wait_for(func(), timeout=self.timeout)
            except self.retry_on as e:
                last_error = e
                context = f" {describe()}" if describe else ""
                logger.warning(
                    f"{label} failed attempt={attempt}/{self.attempts}{context} "
                    f"error={type(e).__name__}: {e}"
                )
                if attempt >= self.attempts:
                    break
                await asyncio.sleep(self.delay_for(attempt))

        raise RetryExhaustedError(self.attempts, last_error)
