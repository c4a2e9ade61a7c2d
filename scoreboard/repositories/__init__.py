"""Data access layer repositories.

Each repository module provides async functions for database operations.
All code uses SQLAlchemy ORM models from `scoreboard.database.orm` with the
`get_session()` context manager.

ORM-based repositories:
- prices_daily_orm: daily bar upserts and range reads
- ingest_ledger_orm: day-level and (code, day)-level ingestion ledgers
"""

from . import ingest_ledger_orm
from . import prices_daily_orm

__all__ = [
    "ingest_ledger_orm",
    "prices_daily_orm",
]
