"""Decoding of upstream daily quote payloads.

All parsing of provider JSON happens here. Everything downstream works
with ``DailyQuote`` records whose code and date are always present and
whose numeric fields are ``float`` or ``None``.
"""

from __future__ import annotations

import math
import re
from datetime import date as DateType
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


_CODE_PATTERN = re.compile(r"(\d{4})")


class DailyQuote(BaseModel):
    """One decoded daily quote row as returned by the provider."""

    code: str = Field(..., min_length=4, max_length=4, description="Canonical security code")
    date: DateType = Field(..., description="Trading date")
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: float | None = None

    model_config = {
        "frozen": True,
    }


def normalize_code(raw: Any) -> str:
    """Reduce a security identifier to its canonical four digit form.

    "72030" -> "7203", "6740.0" -> "6740", "TSE:6740" -> "6740".
    Returns "" when no digit run of length four is present.
    """
    if raw is None:
        return ""
    match = _CODE_PATTERN.search(str(raw).strip())
    return match.group(1) if match else ""


def parse_trading_date(raw: Any) -> DateType | None:
    """Parse ``YYYY-MM-DD`` or ``YYYYMMDD`` into a date."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, DateType):
        return raw
    text = str(raw).strip()
    for fmt in ("%Y-%m-%d", "%Y%m%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def coerce_number(raw: Any) -> float | None:
    """Coerce a JSON scalar to a finite float, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def decode_quote(raw: Any) -> DailyQuote | None:
    """Decode one raw ``daily_quotes`` entry.

    Returns None for entries without a normalizable code or date.
    """
    if not isinstance(raw, dict):
        return None

    code = normalize_code(raw.get("Code"))
    trading_date = parse_trading_date(raw.get("Date"))
    if not code or trading_date is None:
        return None

    return DailyQuote(
        code=code,
        date=trading_date,
        open=coerce_number(raw.get("Open")),
        high=coerce_number(raw.get("High")),
        low=coerce_number(raw.get("Low")),
        close=coerce_number(raw.get("Close")),
        volume=coerce_number(raw.get("Volume")),
    )


def decode_quotes(payload: Any) -> list[DailyQuote]:
    """Decode every entry of a ``daily_quotes`` array, dropping invalid rows."""
    if not isinstance(payload, list):
        return []
    quotes = []
    for raw in payload:
        quote = decode_quote(raw)
        if quote is not None:
            quotes.append(quote)
    return quotes
