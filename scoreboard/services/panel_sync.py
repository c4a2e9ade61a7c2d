"""
Panel synchronization: provider -> prices_daily, with ingestion ledgers.

Three entry points:

- ``sync_full_universe``: every code, one trading day at a time. Days
  already in the day ledger are skipped. The first upstream error aborts
  the run; days written before it stay marked.
- ``sync_codes``: a fixed code list, fetched per code with bounded
  parallelism. A failing code is reported and the rest continue.
- ``sync_code_window``: one code, filling only what the store is missing
  at the edges of the requested range.

A ledger entry is written only after all pages of that day (or code) were
fetched and upserted.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Literal

from scoreboard.core.config import settings
from scoreboard.core.exceptions import AppException, ValidationError
from scoreboard.core.logging import get_logger
from scoreboard.repositories import ingest_ledger_orm as ledger_repo
from scoreboard.repositories import prices_daily_orm as prices_repo
from scoreboard.services.concurrency import run_bounded
from scoreboard.services.jquants.client import JQuantsClient

logger = get_logger("services.panel_sync")

EDGE_TOLERANCE_DAYS = 7


class SyncMode(str, Enum):
    FULL_UNIVERSE = "full_universe"
    PER_CODE = "per_code"
    DISABLED = "disabled"


@dataclass
class SyncSummary:
    """Counters for one sync invocation.

    ``requested``, ``fetched`` and ``skipped`` count trading days in
    full-universe mode and codes in per-code mode.
    """

    mode: SyncMode
    requested: int = 0
    fetched: int = 0
    skipped: int = 0
    quotes: int = 0
    upserted: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Plain dict for callers and logs.

        ``requested`` / ``fetched`` / ``skipped`` are unit-neutral: they stand
        for requestedDays / fetchedDays / skippedDays in full-universe mode and
        for codes in per-code mode. Route-level field naming is left to callers.
        """
        data = asdict(self)
        data["mode"] = self.mode.value
        return data


def _log_summary(summary: SyncSummary, date_from: date, date_to: date) -> None:
    metrics = {k: v for k, v in summary.to_dict().items() if k != "failures"}
    metrics["failed"] = len(summary.failures)
    metrics_str = " ".join(f"{k}={v}" for k, v in metrics.items())
    logger.info(
        f"panel_sync completed: {date_from.isoformat()}..{date_to.isoformat()} | {metrics_str}",
        extra={"extra_fields": {"job": "panel_sync", "status": "success", **metrics}},
    )


def _failure_entry(code: str, error: Exception) -> dict[str, Any]:
    if isinstance(error, AppException):
        return {"code": code, "error": error.error_code, "message": error.message}
    return {"code": code, "error": type(error).__name__, "message": str(error)}


async def sync_full_universe(
    client: JQuantsClient,
    date_from: date,
    date_to: date,
    force: bool = False,
) -> SyncSummary:
    """
    Sync every code for each trading day in the range.

    Raises:
        AuthenticationError: token refresh failed
        UpstreamFetchError: calendar or quotes request failed
    """
    summary = SyncSummary(mode=SyncMode.FULL_UNIVERSE)

    days = await client.trading_days(date_from, date_to)
    summary.requested = len(days)

    done = set() if force else await ledger_repo.ingested_days(days)

    for day in days:
        if day in done:
            summary.skipped += 1
            continue

        quotes = await client.daily_quotes_by_date(day)
        upserted = await prices_repo.upsert_bars(quotes)
        await ledger_repo.mark_ingested(day, upserted)

        summary.fetched += 1
        summary.quotes += len(quotes)
        summary.upserted += upserted
        logger.debug(f"Ingested {day.isoformat()}: {len(quotes)} quotes, {upserted} rows")

    _log_summary(summary, date_from, date_to)
    return summary


@dataclass(frozen=True)
class _CodeOutcome:
    skipped: bool
    quotes: int = 0
    upserted: int = 0


async def sync_codes(
    client: JQuantsClient,
    codes: Sequence[str],
    date_from: date,
    date_to: date,
    force: bool = False,
    concurrency: int | None = None,
) -> SyncSummary:
    """
    Sync a fixed list of codes over the range, ``concurrency`` at a time.

    A code is skipped when every trading day in the range is already
    covered by either ledger. Per-code failures land in
    ``summary.failures``; authentication and calendar failures abort.
    """
    summary = SyncSummary(mode=SyncMode.PER_CODE, requested=len(codes))
    if not codes:
        _log_summary(summary, date_from, date_to)
        return summary

    # Fail fast on credentials before fanning out
    await client.tokens.get_id_token()
    days = await client.trading_days(date_from, date_to)
    wanted = set(days)

    async def sync_one(code: str) -> _CodeOutcome:
        if not force:
            covered = await ledger_repo.covered_code_days(code, days)
            if covered >= wanted:
                return _CodeOutcome(skipped=True)

        quotes = await client.daily_quotes_by_code(code, date_from, date_to)
        upserted = await prices_repo.upsert_bars(quotes)
        await ledger_repo.mark_code_days(code, days)
        return _CodeOutcome(skipped=False, quotes=len(quotes), upserted=upserted)

    report = await run_bounded(codes, sync_one, limit=concurrency or settings.sync_concurrency)

    for outcome in report.results:
        if outcome is None:
            continue
        if outcome.skipped:
            summary.skipped += 1
            continue
        summary.fetched += 1
        summary.quotes += outcome.quotes
        summary.upserted += outcome.upserted

    summary.failures = [_failure_entry(code, err) for code, err in report.failures]
    _log_summary(summary, date_from, date_to)
    return summary


@dataclass
class SyncSegment:
    """One fetched sub-range of a single-code window sync."""

    reason: str
    date_from: date
    date_to: date
    quotes: int = 0
    upserted: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "segment": {"from": self.date_from.isoformat(), "to": self.date_to.isoformat()},
            "quotes": self.quotes,
            "upserted": self.upserted,
        }


@dataclass
class CodeWindowSync:
    """Result of ``sync_code_window``."""

    code: str
    mode: str
    coverage: prices_repo.CoverageMeta
    segments: list[SyncSegment] = field(default_factory=list)

    @property
    def quotes(self) -> int:
        return sum(s.quotes for s in self.segments)

    @property
    def upserted(self) -> int:
        return sum(s.upserted for s in self.segments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "mode": self.mode,
            "coverage": {
                "count": self.coverage.count,
                "min_date": self.coverage.min_date.isoformat() if self.coverage.min_date else None,
                "max_date": self.coverage.max_date.isoformat() if self.coverage.max_date else None,
            },
            "segments": [s.to_dict() for s in self.segments],
        }


def plan_segments(
    coverage: prices_repo.CoverageMeta,
    date_from: date,
    date_to: date,
    mode: str,
    tolerance_days: int = EDGE_TOLERANCE_DAYS,
) -> list[tuple[str, date, date]]:
    """Decide which (reason, from, to) ranges to fetch for one code."""
    if mode == "off":
        return []
    if mode == "force":
        return [("forced", date_from, date_to)]
    if coverage.count == 0 or coverage.min_date is None or coverage.max_date is None:
        return [("empty-db", date_from, date_to)]

    plan = []
    if (coverage.min_date - date_from).days > tolerance_days:
        plan.append(("missing-left-edge", date_from, coverage.min_date - timedelta(days=1)))
    if (date_to - coverage.max_date).days > tolerance_days:
        plan.append(("missing-right-edge", coverage.max_date + timedelta(days=1), date_to))
    return plan


async def sync_code_window(
    client: JQuantsClient,
    code: str,
    date_from: date,
    date_to: date,
    mode: Literal["auto", "force", "off"] = "auto",
) -> CodeWindowSync:
    """
    Bring one code's stored bars up to the requested range.

    ``auto`` fetches the whole range when nothing is stored, otherwise only
    an edge whose gap exceeds ``EDGE_TOLERANCE_DAYS``. ``force`` refetches
    the whole range and ``off`` does nothing.
    """
    if mode not in ("auto", "force", "off"):
        raise ValidationError(message="syncMode must be auto, force or off", details={"mode": mode})
    if date_from > date_to:
        raise ValidationError(message="from must be <= to")

    coverage = await prices_repo.get_coverage(code, date_from, date_to)
    result = CodeWindowSync(code=code, mode=mode, coverage=coverage)

    for reason, seg_from, seg_to in plan_segments(coverage, date_from, date_to, mode):
        quotes = await client.daily_quotes_by_code(code, seg_from, seg_to)
        upserted = await prices_repo.upsert_bars(quotes)
        result.segments.append(
            SyncSegment(
                reason=reason,
                date_from=seg_from,
                date_to=seg_to,
                quotes=len(quotes),
                upserted=upserted,
            )
        )
        logger.info(
            f"{code} {reason} {seg_from.isoformat()}..{seg_to.isoformat()}: "
            f"{len(quotes)} quotes, {upserted} rows"
        )

    if not result.segments:
        logger.debug(f"{code} within tolerance, no sync (mode={mode})")
    return result
