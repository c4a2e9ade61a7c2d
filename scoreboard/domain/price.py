"""Price domain models.

Type-safe representations of scoring-eligible price history.
"""

from __future__ import annotations

import math
from datetime import date as DateType

from pydantic import BaseModel, Field, computed_field


class PriceBar(BaseModel):
    """Single OHLCV price bar with every field present.

    Bars with a missing, non-finite or zero open never become a PriceBar;
    see ``PriceBar.from_row``.
    """

    date: DateType = Field(..., description="Trading date")
    open: float = Field(..., gt=0, description="Opening price")
    high: float = Field(..., ge=0, description="High price")
    low: float = Field(..., ge=0, description="Low price")
    close: float = Field(..., ge=0, description="Closing price")
    volume: float = Field(..., ge=0, description="Trading volume")

    model_config = {
        "from_attributes": True,
        "frozen": True,
    }

    @computed_field
    @property
    def open_volatility_ratio(self) -> float:
        """Intraday range relative to the open."""
        return (self.high - self.low) / self.open

    @classmethod
    def from_row(cls, row) -> "PriceBar | None":
        """Build a bar from a stored row, or None if the row is unusable."""
        values = (row.open, row.high, row.low, row.close, row.volume)
        if any(v is None for v in values):
            return None
        if not all(math.isfinite(float(v)) for v in values):
            return None
        if float(row.open) <= 0 or float(row.volume) < 0:
            return None
        if min(float(row.high), float(row.low), float(row.close)) < 0:
            return None
        return cls(
            date=row.date,
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
        )


class PriceHistory(BaseModel):
    """Chronological price history for one security code."""

    code: str = Field(..., description="Security code")
    bars: list[PriceBar] = Field(default_factory=list, description="Price bars (chronological)")

    def __len__(self) -> int:
        return len(self.bars)

    def sorted(self) -> "PriceHistory":
        """Return a copy with bars in ascending date order."""
        return PriceHistory(code=self.code, bars=sorted(self.bars, key=lambda b: b.date))

