"""
J-Quants market data client.

Provides the trading calendar and paginated daily quotes, either for the
whole universe on one day or for one code across a date range.

Usage:
    async with JQuantsClient() as client:
        days = await client.trading_days(date(2024, 1, 1), date(2024, 3, 31))
        quotes = await client.daily_quotes_by_date(days[-1])
"""

from __future__ import annotations

from datetime import date
from typing import Any

import httpx

from scoreboard.core.config import settings
from scoreboard.core.exceptions import UpstreamFetchError
from scoreboard.core.logging import get_logger
from scoreboard.domain.quotes import DailyQuote, decode_quotes, parse_trading_date
from scoreboard.services.jquants.auth import TokenProvider

logger = get_logger("jquants.client")

TRADING_CALENDAR_PATH = "/markets/trading_calendar"
DAILY_QUOTES_PATH = "/prices/daily_quotes"

# HolidayDivision values that denote a trading session (full or half day)
TRADING_DIVISIONS = frozenset({"1", "2"})


class JQuantsClient:
    """
    Async client for the calendar and daily quote endpoints.

    Owns its ``httpx.AsyncClient`` unless one is passed in. The same HTTP
    client is shared with the token provider.
    """

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        tokens: TokenProvider | None = None,
        base_url: str | None = None,
        max_pages_by_date: int | None = None,
        max_pages_by_code: int | None = None,
    ):
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.jquants_request_timeout, connect=10.0),
        )
        self._base_url = (base_url or settings.jquants_base_url).rstrip("/")
        self.tokens = tokens or TokenProvider(self._http, base_url=self._base_url)
        self._max_pages_by_date = max_pages_by_date or settings.max_pages_by_date
        self._max_pages_by_code = max_pages_by_code or settings.max_pages_by_code

    async def __aenter__(self) -> "JQuantsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def _get_json(self, path: str, params: dict[str, str], what: str) -> dict[str, Any]:
        id_token = await self.tokens.get_id_token()
        try:
            response = await self._http.get(
                f"{self._base_url}{path}",
                params=params,
                headers={
                    "Authorization": f"Bearer {id_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.RequestError as exc:
            logger.warning(f"{what} request failed: {exc!r}")
            raise UpstreamFetchError(
                message=f"{what} request failed",
                details={"error": repr(exc)},
            ) from exc

        if not response.is_success:
            logger.warning(f"{what} failed status={response.status_code}")
            raise UpstreamFetchError(
                message=f"{what} failed: HTTP {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamFetchError(message=f"{what} returned invalid JSON") from exc
        return body if isinstance(body, dict) else {}

    async def trading_days(self, date_from: date, date_to: date) -> list[date]:
        """Return trading days in the inclusive range, ascending.

        Raises:
            UpstreamFetchError: the calendar endpoint answered non-2xx
        """
        body = await self._get_json(
            TRADING_CALENDAR_PATH,
            {"from": date_from.isoformat(), "to": date_to.isoformat()},
            what="trading_calendar",
        )
        rows = body.get("trading_calendar")
        if not isinstance(rows, list):
            return []

        days: set[date] = set()
        for row in rows:
            if not isinstance(row, dict):
                continue
            if str(row.get("HolidayDivision")) not in TRADING_DIVISIONS:
                continue
            day = parse_trading_date(row.get("Date"))
            if day is not None:
                days.add(day)
        return sorted(days)

    async def _paginate(
        self,
        params: dict[str, str],
        max_pages: int,
        what: str,
    ) -> list[DailyQuote]:
        quotes: list[DailyQuote] = []
        seen_keys: set[str] = set()
        pagination_key = ""
        pages = 0

        while True:
            page_params = dict(params)
            if pagination_key:
                page_params["pagination_key"] = pagination_key

            body = await self._get_json(DAILY_QUOTES_PATH, page_params, what=what)
            quotes.extend(decode_quotes(body.get("daily_quotes")))
            pages += 1

            pagination_key = str(body.get("pagination_key") or "")
            if not pagination_key:
                break
            if pagination_key in seen_keys:
                logger.warning(f"{what} repeated pagination_key after {pages} pages")
                raise UpstreamFetchError(
                    message=f"{what} pagination repeated a cursor",
                    details={"pages": pages, "pagination_key": pagination_key},
                )
            seen_keys.add(pagination_key)

            if pages >= max_pages:
                raise UpstreamFetchError(
                    message=f"{what} pagination exceeded {max_pages} pages",
                    details={"pages": pages},
                )

        return quotes

    async def daily_quotes_by_date(self, day: date) -> list[DailyQuote]:
        """Fetch every code's quote for one trading day."""
        return await self._paginate(
            {"date": day.isoformat()},
            self._max_pages_by_date,
            what=f"daily_quotes({day.isoformat()})",
        )

    async def daily_quotes_by_code(
        self,
        code: str,
        date_from: date,
        date_to: date,
    ) -> list[DailyQuote]:
        """Fetch one code's quotes over the inclusive range."""
        return await self._paginate(
            {"code": code, "from": date_from.isoformat(), "to": date_to.isoformat()},
            self._max_pages_by_code,
            what=f"daily_quotes({code})",
        )
