"""
Scoreboard pipeline: request -> sync -> read-back -> factors -> ranking.

Usage:
    from scoreboard.services.scoreboard import ScoreRequest, build_scoreboard

    request = ScoreRequest.from_params(date_to="2024-05-31", limit=50)
    result = await build_scoreboard(request)
    payload = result.to_dict()
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, fields
from datetime import date
from itertools import groupby
from typing import Any, Literal

import pandas as pd
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from scoreboard.core.config import settings
from scoreboard.core.exceptions import ValidationError
from scoreboard.core.logging import get_logger
from scoreboard.database.orm import PriceDaily
from scoreboard.domain.price import PriceBar, PriceHistory
from scoreboard.quant.factors import (
    FactorParams,
    FactorSet,
    IntradayParams,
    MediumHorizonParams,
    compute_metrics,
)
from scoreboard.quant.scoring import ScoredItem, rank_metrics, resolve_weights
from scoreboard.repositories import prices_daily_orm as prices_repo
from scoreboard.services.company_directory import (
    CompanyDirectory,
    MarketCapFilter,
    get_company_directory,
)
from scoreboard.services.jquants.client import JQuantsClient
from scoreboard.services.panel_sync import (
    SyncMode,
    SyncSummary,
    sync_codes,
    sync_full_universe,
)

logger = get_logger("services.scoreboard")

DEFAULT_LIMIT = 100
DEFAULT_MONTHS_BACK = 3


class ScoreRequest(BaseModel):
    """Caller parameters for one scoreboard pass."""

    model_config = {"extra": "forbid"}

    date_from: date | None = Field(default=None, description="Range start (inclusive)")
    date_to: date | None = Field(default=None, description="Range end (inclusive); today if omitted")
    months_back: int = Field(
        default=DEFAULT_MONTHS_BACK, ge=1, le=24,
        description="Calendar months before date_to when date_from is omitted",
    )
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, description="Leaderboard size")
    factor_set: FactorSet = FactorSet.MEDIUM_HORIZON
    windows: dict[str, int] = Field(default_factory=dict, description="Window overrides")
    weights: dict[str, float] = Field(default_factory=dict, description="Weight overrides")
    market_cap: float | None = Field(default=None, description="Market cap threshold")
    market_cap_mode: Literal["over", "under"] = "over"
    sync: bool = True
    force: bool = False

    @field_validator("limit", mode="before")
    @classmethod
    def reject_bool_limit(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("limit must be an integer")
        return v

    @classmethod
    def from_params(cls, **params: Any) -> "ScoreRequest":
        """Build a request, reporting bad input as ``ValidationError``."""
        try:
            return cls(**params)
        except PydanticValidationError as e:
            raise ValidationError(
                message="Invalid scoreboard request",
                details={
                    "errors": [
                        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                        for err in e.errors()
                    ]
                },
            ) from e


def months_before(anchor: date, months: int) -> date:
    """``anchor`` minus ``months`` calendar months, clamped to the month end."""
    return (pd.Timestamp(anchor) - pd.DateOffset(months=months)).date()


@dataclass(frozen=True)
class ResolvedRequest:
    """Fully validated parameters, ready to run."""

    date_from: date
    date_to: date
    months_back: int | None
    limit: int
    params: FactorParams
    weights: dict[str, float]
    market_cap_filter: MarketCapFilter | None
    sync: bool
    force: bool

    def to_dict(self) -> dict[str, Any]:
        windows = {f.name: getattr(self.params, f.name) for f in fields(self.params)}
        return {
            "from": self.date_from.isoformat(),
            "to": self.date_to.isoformat(),
            "months_back": self.months_back,
            "limit": self.limit,
            "factor_set": self.params.factor_set.value,
            "market_cap": self.market_cap_filter.threshold if self.market_cap_filter else None,
            "market_cap_mode": self.market_cap_filter.mode if self.market_cap_filter else None,
            **windows,
            "weights": dict(self.weights),
        }


def resolve_request(request: ScoreRequest, today: date | None = None) -> ResolvedRequest:
    """
    Apply defaults and cross-field checks.

    Raises:
        ValidationError: from > to, unknown window or weight names, bad
            window sizes, negative weights, or a bad market-cap filter
    """
    date_to = request.date_to or today or date.today()
    date_from = request.date_from or months_before(date_to, request.months_back)
    if date_from > date_to:
        raise ValidationError(
            message="from must be <= to",
            details={"from": date_from.isoformat(), "to": date_to.isoformat()},
        )

    params_cls = (
        MediumHorizonParams
        if request.factor_set == FactorSet.MEDIUM_HORIZON
        else IntradayParams
    )
    window_names = {f.name for f in fields(params_cls)}
    unknown = set(request.windows) - window_names
    if unknown:
        raise ValidationError(
            message=f"Unknown window parameter(s): {', '.join(sorted(unknown))}",
            details={"allowed": sorted(window_names)},
        )
    params = params_cls(**request.windows)

    weights = resolve_weights(params.factors, params.default_weights, request.weights)

    cap_filter = None
    if request.market_cap is not None:
        cap_filter = MarketCapFilter(mode=request.market_cap_mode, threshold=request.market_cap)

    return ResolvedRequest(
        date_from=date_from,
        date_to=date_to,
        months_back=None if request.date_from else request.months_back,
        limit=min(request.limit, settings.scoreboard_max_limit),
        params=params,
        weights=weights,
        market_cap_filter=cap_filter,
        sync=request.sync,
        force=request.force,
    )


@dataclass
class ScoreboardResult:
    """Everything a caller needs to render one leaderboard."""

    request: ResolvedRequest
    sync: SyncSummary
    bars_in_db: int
    codes_with_bars: int
    scored_codes: int
    companies_loaded: int
    items: list[ScoredItem] = field(default_factory=list)

    @property
    def missing_company_in_top(self) -> int:
        return sum(1 for item in self.items if item.company is None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": {
                "from": self.request.date_from.isoformat(),
                "to": self.request.date_to.isoformat(),
            },
            "params": self.request.to_dict(),
            "sync": self.sync.to_dict(),
            "universe": {
                "bars_in_db": self.bars_in_db,
                "codes_with_bars": self.codes_with_bars,
                "scored_codes": self.scored_codes,
            },
            "company": {
                "loaded": self.companies_loaded,
                "missing_company_in_top": self.missing_company_in_top,
            },
            "items": [item.to_dict() for item in self.items],
        }


def build_histories(
    rows: Iterable[PriceDaily],
    allowed: set[str] | None = None,
) -> tuple[list[PriceHistory], int]:
    """
    Group code/date-ordered rows into eligible histories.

    Returns the histories and the number of distinct codes seen (after the
    ``allowed`` filter, before bar eligibility).
    """
    histories = []
    seen = 0
    for code, group in groupby(rows, key=lambda r: r.code):
        if allowed is not None and code not in allowed:
            continue
        seen += 1
        bars = [bar for bar in (PriceBar.from_row(r) for r in group) if bar is not None]
        if bars:
            histories.append(PriceHistory(code=code, bars=bars))
    return histories, seen


async def _run_sync(
    client: JQuantsClient,
    resolved: ResolvedRequest,
    allowed: set[str] | None,
) -> SyncSummary:
    if allowed is None:
        return await sync_full_universe(
            client, resolved.date_from, resolved.date_to, force=resolved.force
        )
    return await sync_codes(
        client, sorted(allowed), resolved.date_from, resolved.date_to, force=resolved.force
    )


async def build_scoreboard(
    request: ScoreRequest,
    client: JQuantsClient | None = None,
    directory: CompanyDirectory | None = None,
    today: date | None = None,
) -> ScoreboardResult:
    """
    Run one scoreboard pass.

    Args:
        request: Caller parameters
        client: Market data client (one is created and closed if omitted)
        directory: Company reference (process-wide cache if omitted)
        today: Anchor for the default ``date_to``

    Raises:
        ValidationError: bad parameters, before any network or store access
        AuthenticationError: token refresh failed
        UpstreamFetchError: full-universe sync hit an upstream error
    """
    resolved = resolve_request(request, today=today)
    directory = directory if directory is not None else get_company_directory()

    allowed = (
        resolved.market_cap_filter.allowed_codes(directory)
        if resolved.market_cap_filter
        else None
    )

    if resolved.sync:
        if client is None:
            async with JQuantsClient() as owned:
                summary = await _run_sync(owned, resolved, allowed)
        else:
            summary = await _run_sync(client, resolved, allowed)
    else:
        summary = SyncSummary(mode=SyncMode.DISABLED)

    rows: Sequence[PriceDaily] = await prices_repo.get_bars_in_range(
        resolved.date_from, resolved.date_to
    )
    histories, codes_with_bars = build_histories(rows, allowed)

    metrics = compute_metrics(histories, resolved.params)
    items = rank_metrics(
        metrics,
        resolved.weights,
        resolved.limit,
        companies=directory.rows,
    )

    result = ScoreboardResult(
        request=resolved,
        sync=summary,
        bars_in_db=len(rows),
        codes_with_bars=codes_with_bars,
        scored_codes=len(metrics),
        companies_loaded=len(directory),
        items=items,
    )
    logger.info(
        f"Scoreboard {resolved.date_from}..{resolved.date_to} "
        f"{resolved.params.factor_set.value}: {len(metrics)} scored, "
        f"{len(items)} returned"
    )
    return result
