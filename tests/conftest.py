"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import gc
import json
import warnings
from collections.abc import Callable
from datetime import date, timedelta
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

# Configure asyncio
pytest_plugins = ["pytest_asyncio"]

BASE_URL = "https://jquants.test/v1"


def _force_cleanup():
    """Force cleanup of pending async resources."""
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=ResourceWarning)
        gc.collect()


@pytest.fixture(scope="function", autouse=True)
def cleanup_after_test():
    """Reset the SQLAlchemy engine and company cache around every test."""
    import scoreboard.database.connection as db_conn
    from scoreboard.services.company_directory import get_company_directory

    async def _close_all():
        if db_conn._engine is not None:
            await db_conn._engine.dispose()

    db_conn._engine = None
    db_conn._session_factory = None
    get_company_directory.cache_clear()

    yield

    engine = db_conn._engine
    db_conn._engine = None
    db_conn._session_factory = None
    get_company_directory.cache_clear()
    if engine is not None:
        try:
            asyncio.run(engine.dispose())
        except RuntimeError:
            pass

    _force_cleanup()


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[None, None]:
    """In-memory SQLite database with the panel schema."""
    from scoreboard.database.connection import close_database, init_database

    await init_database("sqlite://")
    yield
    await close_database()


# =============================================================================
# Fake provider
# =============================================================================


def make_quote(code: str, day: date, close: float = 100.0, volume: float = 1000.0, **overrides) -> dict:
    """Raw ``daily_quotes`` entry as the provider returns it."""
    raw = {
        "Code": f"{code}0",
        "Date": day.isoformat(),
        "Open": close,
        "High": close * 1.02,
        "Low": close * 0.98,
        "Close": close,
        "Volume": volume,
    }
    raw.update(overrides)
    return raw


def weekdays(start: date, end: date) -> list[date]:
    days = []
    d = start
    while d <= end:
        if d.weekday() < 5:
            days.append(d)
        d += timedelta(days=1)
    return days


def json_response(payload: dict, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(), headers={"Content-Type": "application/json"})


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Factory for an AsyncClient backed by a request handler."""

    def factory(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def fast_policy():
    """Retry policy without backoff delays."""
    from scoreboard.services.jquants.resilience import RetryPolicy

    return RetryPolicy(attempts=3, timeout=1.0, backoff=0.0)


@pytest.fixture
def sample_closes() -> list[float]:
    """Ten closes used by the return-mean scenario."""
    return [102.0, 101.0, 103.5, 104.0, 102.0, 105.0, 107.5, 106.0, 108.0, 110.0]


class FakeTokens:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = 0

    async def get_id_token(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return "id-token"


class FakeProvider:
    """In-process stand-in for ``JQuantsClient`` serving decoded quotes.

    ``bars`` maps (code, day) to a close; every weekday in the requested
    range is a trading day unless ``calendar`` is given.
    """

    def __init__(self, bars: dict[tuple[str, date], float] | None = None, calendar: list[date] | None = None):
        self.bars = dict(bars or {})
        self.calendar = calendar
        self.tokens = FakeTokens()
        self.fail_days: dict[date, Exception] = {}
        self.fail_codes: dict[str, Exception] = {}
        self.by_date_calls: list[date] = []
        self.by_code_calls: list[tuple[str, date, date]] = []

    async def trading_days(self, date_from: date, date_to: date) -> list[date]:
        days = self.calendar if self.calendar is not None else weekdays(date_from, date_to)
        return [d for d in days if date_from <= d <= date_to]

    def _quotes(self, rows):
        from scoreboard.domain.quotes import decode_quotes

        return decode_quotes([make_quote(code, day, close) for (code, day), close in sorted(rows)])

    async def daily_quotes_by_date(self, day: date):
        self.by_date_calls.append(day)
        if day in self.fail_days:
            raise self.fail_days[day]
        return self._quotes((key, close) for key, close in self.bars.items() if key[1] == day)

    async def daily_quotes_by_code(self, code: str, date_from: date, date_to: date):
        self.by_code_calls.append((code, date_from, date_to))
        if code in self.fail_codes:
            raise self.fail_codes[code]
        return self._quotes(
            (key, close)
            for key, close in self.bars.items()
            if key[0] == code and date_from <= key[1] <= date_to
        )


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
