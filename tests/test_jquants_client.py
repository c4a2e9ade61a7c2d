"""Tests for the calendar and daily quote endpoints of JQuantsClient."""

from datetime import date

import httpx
import pytest

from conftest import BASE_URL, json_response, make_quote
from scoreboard.core.exceptions import UpstreamFetchError
from scoreboard.services.jquants.client import JQuantsClient


class StaticTokens:
    """Token provider stand-in that always returns the same token."""

    def __init__(self, token: str = "id-token"):
        self.token = token
        self.calls = 0

    async def get_id_token(self) -> str:
        self.calls += 1
        return self.token


def make_client(mock_http, handler, **kwargs) -> JQuantsClient:
    return JQuantsClient(
        http=mock_http(handler),
        tokens=StaticTokens(),
        base_url=BASE_URL,
        **kwargs,
    )


class TestTradingDays:
    @pytest.mark.asyncio
    async def test_filters_trading_divisions_and_sorts(self, mock_http):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("Authorization")
            return json_response(
                {
                    "trading_calendar": [
                        {"Date": "2024-01-05", "HolidayDivision": "1"},
                        {"Date": "2024-01-03", "HolidayDivision": "0"},
                        {"Date": "2024-01-04", "HolidayDivision": "2"},
                        {"Date": "2024-01-06", "HolidayDivision": "3"},
                        {"Date": "2024-01-04", "HolidayDivision": "1"},
                    ]
                }
            )

        client = make_client(mock_http, handler)
        days = await client.trading_days(date(2024, 1, 1), date(2024, 1, 10))

        assert days == [date(2024, 1, 4), date(2024, 1, 5)]
        assert seen["path"] == "/v1/markets/trading_calendar"
        assert seen["params"] == {"from": "2024-01-01", "to": "2024-01-10"}
        assert seen["auth"] == "Bearer id-token"

    @pytest.mark.asyncio
    async def test_non_success_is_upstream_error(self, mock_http):
        client = make_client(mock_http, lambda r: json_response({"message": "down"}, status_code=500))

        with pytest.raises(UpstreamFetchError) as exc_info:
            await client.trading_days(date(2024, 1, 1), date(2024, 1, 10))
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_missing_calendar_key(self, mock_http):
        client = make_client(mock_http, lambda r: json_response({}))
        assert await client.trading_days(date(2024, 1, 1), date(2024, 1, 10)) == []


class TestDailyQuotes:
    @pytest.mark.asyncio
    async def test_follows_pagination_by_date(self, mock_http):
        day = date(2024, 1, 4)
        pages = {
            None: {"daily_quotes": [make_quote("7203", day)], "pagination_key": "k1"},
            "k1": {"daily_quotes": [make_quote("6758", day)], "pagination_key": "k2"},
            "k2": {"daily_quotes": [make_quote("9984", day), {"Code": "", "Date": "2024-01-04"}]},
        }
        requested = []

        def handler(request):
            key = request.url.params.get("pagination_key")
            requested.append((request.url.params["date"], key))
            return json_response(pages[key])

        client = make_client(mock_http, handler)
        quotes = await client.daily_quotes_by_date(day)

        assert [q.code for q in quotes] == ["7203", "6758", "9984"]
        assert requested == [("2024-01-04", None), ("2024-01-04", "k1"), ("2024-01-04", "k2")]

    @pytest.mark.asyncio
    async def test_by_code_params(self, mock_http):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return json_response({"daily_quotes": [make_quote("7203", date(2024, 1, 4))]})

        client = make_client(mock_http, handler)
        quotes = await client.daily_quotes_by_code("7203", date(2024, 1, 1), date(2024, 1, 31))

        assert len(quotes) == 1
        assert seen == {"code": "7203", "from": "2024-01-01", "to": "2024-01-31"}

    @pytest.mark.asyncio
    async def test_repeated_pagination_key_aborts(self, mock_http):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return json_response(
                {"daily_quotes": [make_quote("7203", date(2024, 1, 4))], "pagination_key": "same"}
            )

        client = make_client(mock_http, handler)
        with pytest.raises(UpstreamFetchError) as exc_info:
            await client.daily_quotes_by_date(date(2024, 1, 4))

        assert calls == 2
        assert exc_info.value.details["pages"] == 2

    @pytest.mark.asyncio
    async def test_runaway_pagination_aborts(self, mock_http):
        counter = 0

        def handler(request):
            nonlocal counter
            counter += 1
            return json_response({"daily_quotes": [], "pagination_key": f"k{counter}"})

        client = make_client(mock_http, handler, max_pages_by_date=5)
        with pytest.raises(UpstreamFetchError, match="pagination"):
            await client.daily_quotes_by_date(date(2024, 1, 4))
        assert counter == 5

    @pytest.mark.asyncio
    async def test_page_failure_is_upstream_error(self, mock_http):
        def handler(request):
            if request.url.params.get("pagination_key"):
                return httpx.Response(503, text="busy")
            return json_response({"daily_quotes": [], "pagination_key": "k1"})

        client = make_client(mock_http, handler)
        with pytest.raises(UpstreamFetchError):
            await client.daily_quotes_by_date(date(2024, 1, 4))

    @pytest.mark.asyncio
    async def test_transport_error_is_upstream_error(self, mock_http):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(mock_http, handler)
        with pytest.raises(UpstreamFetchError):
            await client.daily_quotes_by_code("7203", date(2024, 1, 1), date(2024, 1, 31))


@pytest.mark.asyncio
async def test_shares_http_client_with_default_token_provider(mock_http, monkeypatch):
    from scoreboard.core.config import settings

    monkeypatch.setattr(settings, "jquants_refresh_token", "s3cr3t")
    paths = []

    def handler(request):
        paths.append(request.url.path)
        if request.url.path.endswith("/token/auth_refresh"):
            return json_response({"idToken": "fresh"})
        assert request.headers["Authorization"] == "Bearer fresh"
        return json_response({"trading_calendar": []})

    http = mock_http(handler)
    async with JQuantsClient(http=http, base_url=BASE_URL) as client:
        await client.trading_days(date(2024, 1, 1), date(2024, 1, 2))
        await client.trading_days(date(2024, 1, 1), date(2024, 1, 2))

    assert paths.count("/v1/token/auth_refresh") == 1
    assert not http.is_closed
