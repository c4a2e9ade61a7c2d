"""Domain models for strongly-typed data throughout the pipeline.

Usage:
    from scoreboard.domain import DailyQuote, PriceBar, PriceHistory

    quote = decode_quote({"Code": "72030", "Date": "2024-01-04", ...})
"""

from scoreboard.domain.price import (
    PriceBar,
    PriceHistory,
)
from scoreboard.domain.quotes import (
    DailyQuote,
    decode_quote,
    decode_quotes,
    normalize_code,
    parse_trading_date,
)

__all__ = [
    # Quotes
    "DailyQuote",
    "decode_quote",
    "decode_quotes",
    "normalize_code",
    "parse_trading_date",
    # Price
    "PriceBar",
    "PriceHistory",
]
