"""SQLAlchemy ORM models for the daily bar panel.

This module defines all database tables using SQLAlchemy 2.0 ORM style.
Uses async support via the asyncpg driver (aiosqlite for local runs).

Usage:
    from scoreboard.database.orm import PriceDaily
    from scoreboard.database.connection import get_session

    async with get_session() as session:
        bar = await session.get(PriceDaily, ("7203", date(2024, 1, 4)))
"""

from __future__ import annotations

from datetime import date as DateType
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# Naming convention for constraints and indexes (deterministic names for Alembic)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# =============================================================================
# PRICE PANEL
# =============================================================================


class PriceDaily(Base):
    """One trading day's OHLCV for one security code."""
    __tablename__ = "prices_daily"

    code: Mapped[str] = mapped_column(String(8), primary_key=True)
    date: Mapped[DateType] = mapped_column(Date, primary_key=True)
    open: Mapped[float | None] = mapped_column(Float)
    high: Mapped[float | None] = mapped_column(Float)
    low: Mapped[float | None] = mapped_column(Float)
    close: Mapped[float | None] = mapped_column(Float)
    volume: Mapped[int | None] = mapped_column(BigInteger)

    __table_args__ = (
        Index("idx_prices_daily_date", "date"),
    )


# =============================================================================
# INGESTION LEDGERS
# =============================================================================


class PanelIngestDay(Base):
    """A trading day whose full-universe fetch and upsert completed."""
    __tablename__ = "panel_ingest_days"

    date: Mapped[DateType] = mapped_column(Date, primary_key=True)
    ingested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    rows_upserted: Mapped[int] = mapped_column(Integer, nullable=False)


class PanelIngestCodeDay(Base):
    """A (code, trading day) pair covered by a per-code fetch and upsert."""
    __tablename__ = "panel_ingest_code_days"

    code: Mapped[str] = mapped_column(String(8), primary_key=True)
    date: Mapped[DateType] = mapped_column(Date, primary_key=True)
    ingested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
