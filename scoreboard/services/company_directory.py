"""
Company reference data and market-cap filtering.

The reference file is a delimited text file (comma or tab) with a header
row. The security code comes from the ``Code`` column when present,
otherwise from the second column. Every column is kept as a string.

Usage:
    directory = get_company_directory()
    cap_filter = MarketCapFilter(mode="over", threshold=1e11)
    allowed = cap_filter.allowed_codes(directory)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Literal

import pandas as pd

from scoreboard.core.config import settings
from scoreboard.core.exceptions import ValidationError
from scoreboard.core.logging import get_logger
from scoreboard.domain.quotes import coerce_number, normalize_code

logger = get_logger("services.company_directory")

CODE_COLUMN = "Code"
MARKET_CAP_COLUMN = "MarketCap"
CODE_FALLBACK_POSITION = 1

CompanyRow = dict[str, str]


@dataclass(frozen=True)
class CompanyDirectory:
    """Read-only mapping of canonical code to its reference row."""

    rows: dict[str, CompanyRow] = field(default_factory=dict)
    source: str | None = None

    def __len__(self) -> int:
        return len(self.rows)

    def __contains__(self, code: object) -> bool:
        return code in self.rows

    @property
    def loaded(self) -> bool:
        return bool(self.rows)

    def codes(self) -> list[str]:
        return sorted(self.rows)

    def get(self, code: str) -> CompanyRow | None:
        return self.rows.get(code)

    def market_cap(self, code: str) -> float | None:
        """Numeric market cap for ``code``, or None when absent or unparsable."""
        row = self.rows.get(code)
        if row is None:
            return None
        return coerce_number((row.get(MARKET_CAP_COLUMN) or "").strip() or None)


def load_company_directory(path: str | Path | None = None) -> CompanyDirectory:
    """
    Read the company reference file.

    A missing or unreadable file yields an empty directory (logged), so the
    scoreboard still works without company metadata.
    """
    csv_path = Path(path or settings.company_csv_path)
    if not csv_path.is_file():
        logger.warning(f"Company reference file not found: {csv_path}")
        return CompanyDirectory(source=str(csv_path))

    try:
        df = pd.read_csv(
            csv_path,
            sep=None,
            engine="python",
            dtype=str,
            encoding="utf-8-sig",
            keep_default_na=False,
            skipinitialspace=True,
        )
    except (OSError, ValueError, pd.errors.ParserError) as e:
        logger.warning(f"Failed to read company reference file {csv_path}: {e}")
        return CompanyDirectory(source=str(csv_path))

    df.columns = [
        str(c).strip().strip('"') or f"col{i + 1}" for i, c in enumerate(df.columns)
    ]
    if CODE_COLUMN in df.columns:
        code_series = df[CODE_COLUMN]
    elif len(df.columns) > CODE_FALLBACK_POSITION:
        code_series = df.iloc[:, CODE_FALLBACK_POSITION]
    else:
        logger.warning(f"Company reference file has no code column: {csv_path}")
        return CompanyDirectory(source=str(csv_path))

    rows: dict[str, CompanyRow] = {}
    records = df.to_dict(orient="records")
    for raw_code, record in zip(code_series.tolist(), records):
        code = normalize_code(raw_code)
        if not code:
            continue
        rows[code] = {k: str(v).strip() for k, v in record.items()}

    logger.info(f"Loaded {len(rows)} companies from {csv_path}")
    return CompanyDirectory(rows=rows, source=str(csv_path))


@lru_cache(maxsize=1)
def get_company_directory() -> CompanyDirectory:
    """Process-wide directory loaded from settings.company_csv_path.

    Call ``get_company_directory.cache_clear()`` after replacing the file.
    """
    return load_company_directory()


@dataclass(frozen=True)
class MarketCapFilter:
    """Keep codes whose market cap is at/above (``over``) or at/below (``under``) a threshold."""

    mode: Literal["over", "under"]
    threshold: float

    def __post_init__(self) -> None:
        if self.mode not in ("over", "under"):
            raise ValidationError(
                message="marketCapMode must be 'over' or 'under'",
                details={"mode": self.mode},
            )
        value = coerce_number(self.threshold)
        if value is None or value <= 0:
            raise ValidationError(
                message="marketCap threshold must be a positive number",
                details={"threshold": self.threshold},
            )

    def accepts(self, market_cap: float | None) -> bool:
        if market_cap is None:
            return False
        if self.mode == "over":
            return market_cap >= self.threshold
        return market_cap <= self.threshold

    def allowed_codes(self, directory: CompanyDirectory) -> set[str]:
        """Codes from ``directory`` that pass the filter."""
        return {code for code in directory.rows if self.accepts(directory.market_cap(code))}

    def to_dict(self) -> dict[str, object]:
        return {"mode": self.mode, "threshold": self.threshold}
