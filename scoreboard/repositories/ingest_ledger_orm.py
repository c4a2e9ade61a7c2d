"""Ingestion ledger repository using SQLAlchemy ORM.

Two granularities are tracked:

- ``panel_ingest_days``: a trading day whose full-universe fetch and upsert
  completed in one pass.
- ``panel_ingest_code_days``: a (code, trading day) pair written by the
  per-code sync path.

A (code, day) pair counts as covered when either ledger says so.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timezone

from sqlalchemy import and_, select

from scoreboard.core.config import settings
from scoreboard.core.logging import get_logger
from scoreboard.database.connection import get_session
from scoreboard.database.orm import PanelIngestCodeDay, PanelIngestDay
from scoreboard.repositories._upsert import chunked, dialect_insert


logger = get_logger("repositories.ingest_ledger_orm")


async def is_ingested(day: date) -> bool:
    """True iff the full universe has been ingested for ``day``."""
    async with get_session() as session:
        result = await session.execute(
            select(PanelIngestDay.date).where(PanelIngestDay.date == day)
        )
        return result.scalar_one_or_none() is not None


async def ingested_days(days: Iterable[date]) -> set[date]:
    """Return the subset of ``days`` with a full-universe ledger entry."""
    wanted = sorted(set(days))
    if not wanted:
        return set()

    async with get_session() as session:
        result = await session.execute(
            select(PanelIngestDay.date).where(PanelIngestDay.date.in_(wanted))
        )
        return set(result.scalars().all())


async def mark_ingested(day: date, rows_upserted: int) -> None:
    """Record (or refresh) the completion entry for ``day``."""
    now = datetime.now(timezone.utc)
    async with get_session() as session:
        insert = dialect_insert(session)
        stmt = insert(PanelIngestDay).values(
            date=day,
            ingested_at=now,
            rows_upserted=rows_upserted,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["date"],
            set_={
                "ingested_at": stmt.excluded.ingested_at,
                "rows_upserted": stmt.excluded.rows_upserted,
            },
        )
        await session.execute(stmt)
        await session.commit()
    logger.debug(f"Marked {day.isoformat()} ingested ({rows_upserted} rows)")


async def covered_code_days(code: str, days: Iterable[date]) -> set[date]:
    """Return the subset of ``days`` already covered for ``code``."""
    wanted = sorted(set(days))
    if not wanted:
        return set()

    covered = await ingested_days(wanted)
    async with get_session() as session:
        result = await session.execute(
            select(PanelIngestCodeDay.date).where(
                and_(
                    PanelIngestCodeDay.code == code,
                    PanelIngestCodeDay.date.in_(wanted),
                )
            )
        )
        covered.update(result.scalars().all())
    return covered


async def mark_code_days(code: str, days: Iterable[date]) -> int:
    """Record that ``code`` was fetched and written for each of ``days``."""
    rows = [
        {"code": code, "date": d, "ingested_at": datetime.now(timezone.utc)}
        for d in sorted(set(days))
    ]
    if not rows:
        return 0

    async with get_session() as session:
        insert = dialect_insert(session)
        for part in chunked(rows, settings.upsert_chunk_size):
            stmt = insert(PanelIngestCodeDay).values(list(part))
            stmt = stmt.on_conflict_do_update(
                index_elements=["code", "date"],
                set_={"ingested_at": stmt.excluded.ingested_at},
            )
            await session.execute(stmt)
        await session.commit()
    return len(rows)
