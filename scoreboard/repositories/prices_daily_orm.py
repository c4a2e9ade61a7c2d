"""Daily bar repository using SQLAlchemy ORM.

This is the only module that writes ``prices_daily``.

Usage:
    from scoreboard.repositories import prices_daily_orm as prices_repo

    upserted = await prices_repo.upsert_bars(quotes)
    rows = await prices_repo.get_bars_in_range(date_from, date_to)
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy import and_, func, select

from scoreboard.core.config import settings
from scoreboard.core.logging import get_logger
from scoreboard.database.connection import get_session
from scoreboard.database.orm import PriceDaily
from scoreboard.domain.quotes import DailyQuote
from scoreboard.repositories._upsert import chunked, dedupe_by_key, dialect_insert


logger = get_logger("repositories.prices_daily_orm")

UPSERT_COLUMNS = ("open", "high", "low", "close", "volume")


@dataclass(frozen=True)
class CoverageMeta:
    """Stored coverage of one code inside a date range."""

    count: int
    min_date: date | None
    max_date: date | None


def _round_half_up(value: float | None) -> int | None:
    if value is None:
        return None
    return math.floor(value + 0.5)


def _to_row(quote: DailyQuote) -> dict:
    return {
        "code": quote.code,
        "date": quote.date,
        "open": quote.open,
        "high": quote.high,
        "low": quote.low,
        "close": quote.close,
        "volume": _round_half_up(quote.volume),
    }


async def upsert_bars(
    quotes: Sequence[DailyQuote],
    chunk_size: int | None = None,
) -> int:
    """Insert or overwrite bars keyed by (code, date).

    Rows are written in chunks, one multi-row statement per chunk, and
    every numeric column is overwritten on conflict.

    Args:
        quotes: Decoded quotes to persist
        chunk_size: Rows per statement (defaults to settings.upsert_chunk_size)

    Returns:
        Total affected-row count across chunks
    """
    if not quotes:
        return 0

    size = chunk_size or settings.upsert_chunk_size
    rows = dedupe_by_key([_to_row(q) for q in quotes], ("code", "date"))

    upserted = 0
    async with get_session() as session:
        insert = dialect_insert(session)
        for part in chunked(rows, size):
            stmt = insert(PriceDaily).values(list(part))
            stmt = stmt.on_conflict_do_update(
                index_elements=["code", "date"],
                set_={col: stmt.excluded[col] for col in UPSERT_COLUMNS},
            )
            result = await session.execute(stmt)
            await session.commit()
            upserted += max(result.rowcount or 0, 0)

    logger.debug(f"Upserted {upserted} bars ({len(rows)} distinct keys)")
    return upserted


async def get_bars_in_range(date_from: date, date_to: date) -> Sequence[PriceDaily]:
    """Get every stored bar within the inclusive range, ordered by code, date."""
    async with get_session() as session:
        result = await session.execute(
            select(PriceDaily)
            .where(
                and_(
                    PriceDaily.date >= date_from,
                    PriceDaily.date <= date_to,
                )
            )
            .order_by(PriceDaily.code.asc(), PriceDaily.date.asc())
        )
        return result.scalars().all()


async def get_code_bars(code: str, date_from: date, date_to: date) -> Sequence[PriceDaily]:
    """Get stored bars for one code within the inclusive range, ordered by date."""
    async with get_session() as session:
        result = await session.execute(
            select(PriceDaily)
            .where(
                and_(
                    PriceDaily.code == code,
                    PriceDaily.date >= date_from,
                    PriceDaily.date <= date_to,
                )
            )
            .order_by(PriceDaily.date.asc())
        )
        return result.scalars().all()


async def get_coverage(code: str, date_from: date, date_to: date) -> CoverageMeta:
    """Count and bound the stored bars of one code within the range."""
    async with get_session() as session:
        result = await session.execute(
            select(
                func.count(),
                func.min(PriceDaily.date),
                func.max(PriceDaily.date),
            ).where(
                and_(
                    PriceDaily.code == code,
                    PriceDaily.date >= date_from,
                    PriceDaily.date <= date_to,
                )
            )
        )
        count, min_date, max_date = result.one()
        return CoverageMeta(count=int(count or 0), min_date=min_date, max_date=max_date)
