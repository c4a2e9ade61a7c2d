"""Exchange the long-lived refresh token for a short-lived id token."""

from __future__ import annotations

import asyncio
import re
import time

import httpx

from scoreboard.core.config import settings
from scoreboard.core.exceptions import AuthenticationError
from scoreboard.core.logging import get_logger
from scoreboard.services.jquants.resilience import RetryExhaustedError, RetryPolicy

logger = get_logger("jquants.auth")

AUTH_REFRESH_PATH = "/token/auth_refresh"

_REFRESH_PARAM_RE = re.compile(r"(refreshtoken=)[^&\s]+", re.IGNORECASE)


def redact_refresh_token(url: str) -> str:
    """Replace the refresh token query value so the URL is safe to log."""
    return _REFRESH_PARAM_RE.sub(r"\1REDACTED", url)


class TokenProvider:
    """
    Obtains and caches the bearer id token.

    The token is reused for ``ttl_seconds``; ``invalidate()`` forces the next
    caller to refresh. Concurrent callers share one refresh.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        refresh_token: str | None = None,
        base_url: str | None = None,
        policy: RetryPolicy | None = None,
        ttl_seconds: int | None = None,
    ):
        self._http = http
        self._refresh_token = (
            refresh_token if refresh_token is not None else settings.jquants_refresh_token
        )
        self._base_url = (base_url or settings.jquants_base_url).rstrip("/")
        self._policy = policy or RetryPolicy(
            attempts=settings.jquants_auth_retries + 1,
            timeout=settings.jquants_auth_timeout,
            backoff=settings.jquants_auth_backoff,
        )
        self._ttl = settings.jquants_token_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._token: str | None = None
        self._fetched_at: float | None = None
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        if self._token is None or self._fetched_at is None:
            return False
        return time.monotonic() - self._fetched_at < self._ttl

    def invalidate(self) -> None:
        """Drop the cached token."""
        self._token = None
        self._fetched_at = None

    async def get_id_token(self) -> str:
        """Return a valid id token, refreshing it when needed.

        Raises:
            AuthenticationError: missing credential, rejected refresh, a
                response without ``idToken``, or transient failures on every
                attempt
        """
        async with self._lock:
            if self._is_fresh():
                return self._token  # type: ignore[return-value]

            token = await self._refresh()
            self._token = token
            self._fetched_at = time.monotonic()
            return token

    async def _refresh(self) -> str:
        if not self._refresh_token:
            raise AuthenticationError(
                message="Refresh token is not configured",
                details={"setting": "JQUANTS_REFRESH_TOKEN"},
            )

        url = f"{self._base_url}{AUTH_REFRESH_PATH}"
        params = {"refreshtoken": self._refresh_token}

        safe_url = redact_refresh_token(str(httpx.URL(url, params=params)))

        try:
            response = await self._policy.run(
                lambda: self._http.post(
                    url, params=params, headers={"Accept": "application/json"}
                ),
                label="auth_refresh",
                describe=lambda: f"url={safe_url}",
            )
        except RetryExhaustedError as e:
            raise AuthenticationError(
                message="Token refresh failed after retries",
                details={"attempts": e.attempts, "error": repr(e.last_error)},
            ) from e

        if not response.is_success:
            logger.warning(f"auth_refresh rejected status={response.status_code}")
            raise AuthenticationError(
                message=f"auth_refresh failed: HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError:
            body = None
        id_token = str(body.get("idToken") or "") if isinstance(body, dict) else ""
        if not id_token:
            raise AuthenticationError(message="idToken missing in auth_refresh response")

        logger.debug("Obtained new id token")
        return id_token
