"""Database module with SQLAlchemy async sessions and ORM models."""

from .connection import (
    close_database,
    close_sqlalchemy_engine,
    ensure_schema,
    get_async_database_url,
    get_engine,
    get_session,
    init_database,
    init_sqlalchemy_engine,
)
from .orm import Base, PanelIngestCodeDay, PanelIngestDay, PriceDaily


__all__ = [
    "init_sqlalchemy_engine",
    "close_sqlalchemy_engine",
    "get_session",
    "get_engine",
    "ensure_schema",
    "init_database",
    "close_database",
    "get_async_database_url",
    "Base",
    "PriceDaily",
    "PanelIngestDay",
    "PanelIngestCodeDay",
]
