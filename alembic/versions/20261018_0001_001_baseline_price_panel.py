"""Baseline schema for the daily bar panel and ingestion ledgers.

Revision ID: 001_baseline
Revises:
Create Date: 2026-10-18

For databases created by ensure_schema(), run: alembic stamp 001_baseline
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_baseline"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create prices_daily and both ingestion ledgers."""

    # ==========================================================================
    # PRICE PANEL
    # ==========================================================================

    op.create_table(
        "prices_daily",
        sa.Column("code", sa.String(8), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("open", sa.Float()),
        sa.Column("high", sa.Float()),
        sa.Column("low", sa.Float()),
        sa.Column("close", sa.Float()),
        sa.Column("volume", sa.BigInteger()),
        sa.PrimaryKeyConstraint("code", "date", name="pk_prices_daily"),
    )
    op.create_index("idx_prices_daily_date", "prices_daily", ["date"])

    # ==========================================================================
    # INGESTION LEDGERS
    # ==========================================================================

    op.create_table(
        "panel_ingest_days",
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("ingested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rows_upserted", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("date", name="pk_panel_ingest_days"),
    )

    op.create_table(
        "panel_ingest_code_days",
        sa.Column("code", sa.String(8), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("ingested_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("code", "date", name="pk_panel_ingest_code_days"),
    )


def downgrade() -> None:
    """Drop all baseline tables."""
    op.drop_table("panel_ingest_code_days")
    op.drop_table("panel_ingest_days")
    op.drop_index("idx_prices_daily_date", table_name="prices_daily")
    op.drop_table("prices_daily")
