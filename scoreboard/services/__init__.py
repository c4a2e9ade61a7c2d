"""Business logic services."""

from . import company_directory, concurrency, panel_sync, scoreboard


__all__ = [
    "company_directory",
    "concurrency",
    "panel_sync",
    "scoreboard",
]
