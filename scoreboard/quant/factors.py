"""
Per-code factor computation over daily bar histories.

Two interchangeable factor sets are supported:

MEDIUM_HORIZON
    ret_mean        mean of the last n_ret close-to-close returns
    volchg_ratio    recent volume vs. the volume that preceded it
    volat_rto_mean  mean intraday range relative to the open
    mom_n_days      close-to-close return over n_mom days

INTRADAY
    open_volatility_ratio   today's (high - low) / open
    gap_ratio               today's open vs. yesterday's close
    volatility_spike_ratio  today's range ratio vs. the preceding days
    intraday_momentum       today's (close - open) / open
    volume_surge_today      today's volume vs. the preceding days

A code with too little history, or with any non-finite factor, is excluded
from the pass. Values are never defaulted.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from enum import Enum
from typing import ClassVar, Union

import numpy as np

from scoreboard.core.exceptions import InsufficientHistoryError, ValidationError
from scoreboard.core.logging import get_logger
from scoreboard.domain.price import PriceBar, PriceHistory

logger = get_logger("quant.factors")


class FactorSet(str, Enum):
    """Which factor family a scoring pass uses."""

    MEDIUM_HORIZON = "medium_horizon"
    INTRADAY = "intraday"


def _mean(values: np.ndarray) -> float:
    if values.size == 0:
        return math.nan
    return float(values.mean())


def _ratio(numerator: float, denominator: float) -> float:
    if not math.isfinite(denominator) or denominator == 0:
        return math.nan
    return numerator / denominator


def _check_windows(params: object) -> None:
    for name, value in asdict(params).items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError(
                message=f"{name} must be an integer >= 1",
                details={name: value},
            )


@dataclass(frozen=True)
class MediumHorizonParams:
    """Window sizes (in bars) for the medium-horizon factor set."""

    n_ret: int = 9
    n_vol_short: int = 10
    n_vol_long: int = 60
    n_vola: int = 10
    n_mom: int = 3

    factor_set: ClassVar[FactorSet] = FactorSet.MEDIUM_HORIZON
    factors: ClassVar[tuple[str, ...]] = (
        "ret_mean",
        "volchg_ratio",
        "volat_rto_mean",
        "mom_n_days",
    )
    default_weights: ClassVar[dict[str, float]] = {
        "ret_mean": 0.35,
        "volchg_ratio": 0.25,
        "volat_rto_mean": 0.2,
        "mom_n_days": 0.2,
    }

    def __post_init__(self) -> None:
        _check_windows(self)

    @property
    def min_history(self) -> int:
        return max(self.n_ret + 1, self.n_mom + 1, self.n_vol_short + 1, 10)

    def compute(self, bars: Sequence[PriceBar]) -> dict[str, float]:
        """Compute the factor vector for one date-ordered history.

        Raises:
            InsufficientHistoryError: fewer than ``min_history`` bars
        """
        if len(bars) < self.min_history:
            raise InsufficientHistoryError(
                details={"bars": len(bars), "required": self.min_history}
            )

        closes = np.array([b.close for b in bars], dtype=float)
        volumes = np.array([b.volume for b in bars], dtype=float)
        ranges = np.array([b.open_volatility_ratio for b in bars], dtype=float)

        prev, curr = closes[:-1], closes[1:]
        valid = prev != 0
        rets = curr[valid] / prev[valid] - 1.0
        ret_mean = _mean(rets[-self.n_ret:])

        short = _mean(volumes[-self.n_vol_short:])
        earlier = volumes[: max(0, volumes.size - self.n_vol_short)]
        long = _mean(earlier[earlier.size - min(self.n_vol_long, earlier.size):])
        volchg_ratio = _ratio(short, long)

        volat_rto_mean = _mean(ranges[-self.n_vola:])

        base = float(closes[-1 - self.n_mom])
        mom_n_days = _ratio(float(closes[-1]), base) - 1.0

        return {
            "ret_mean": ret_mean,
            "volchg_ratio": volchg_ratio,
            "volat_rto_mean": volat_rto_mean,
            "mom_n_days": mom_n_days,
        }


@dataclass(frozen=True)
class IntradayParams:
    """Window sizes (in bars) for the intraday factor set."""

    n_vol_short: int = 10
    n_vola: int = 10

    factor_set: ClassVar[FactorSet] = FactorSet.INTRADAY
    factors: ClassVar[tuple[str, ...]] = (
        "open_volatility_ratio",
        "gap_ratio",
        "volatility_spike_ratio",
        "intraday_momentum",
        "volume_surge_today",
    )
    default_weights: ClassVar[dict[str, float]] = {
        "open_volatility_ratio": 0.25,
        "gap_ratio": 0.1,
        "volatility_spike_ratio": 0.35,
        "intraday_momentum": 0.1,
        "volume_surge_today": 0.2,
    }

    def __post_init__(self) -> None:
        _check_windows(self)

    @property
    def min_history(self) -> int:
        return max(self.n_vola + 1, self.n_vol_short + 1, 2)

    def compute(self, bars: Sequence[PriceBar]) -> dict[str, float]:
        """Compute the factor vector for one date-ordered history.

        Raises:
            InsufficientHistoryError: fewer than ``min_history`` bars
        """
        if len(bars) < self.min_history:
            raise InsufficientHistoryError(
                details={"bars": len(bars), "required": self.min_history}
            )

        last, prev = bars[-1], bars[-2]
        preceding = bars[:-1]

        open_vol = last.open_volatility_ratio
        prev_ranges = np.array(
            [b.open_volatility_ratio for b in preceding[-self.n_vola:]], dtype=float
        )
        prev_volumes = np.array(
            [b.volume for b in preceding[-self.n_vol_short:]], dtype=float
        )

        return {
            "open_volatility_ratio": open_vol,
            "gap_ratio": _ratio(last.open - prev.close, prev.close),
            "volatility_spike_ratio": _ratio(open_vol, _mean(prev_ranges)),
            "intraday_momentum": (last.close - last.open) / last.open,
            "volume_surge_today": _ratio(last.volume, _mean(prev_volumes)),
        }


FactorParams = Union[MediumHorizonParams, IntradayParams]


def default_params(factor_set: FactorSet) -> FactorParams:
    """Default window parameters for ``factor_set``."""
    if factor_set == FactorSet.MEDIUM_HORIZON:
        return MediumHorizonParams()
    if factor_set == FactorSet.INTRADAY:
        return IntradayParams()
    raise ValidationError(message=f"Unknown factor set: {factor_set!r}")


@dataclass(frozen=True)
class CodeMetrics:
    """Raw factor vector of one eligible code."""

    code: str
    factors: dict[str, float]


def compute_metrics(
    histories: Iterable[PriceHistory],
    params: FactorParams,
) -> list[CodeMetrics]:
    """
    Compute factors for every history, dropping ineligible codes.

    Output order follows the input order.
    """
    metrics: list[CodeMetrics] = []
    short_history = 0
    non_finite = 0

    for history in histories:
        bars = history.sorted().bars
        try:
            factors = params.compute(bars)
        except InsufficientHistoryError:
            short_history += 1
            continue

        if not all(math.isfinite(v) for v in factors.values()):
            non_finite += 1
            continue

        metrics.append(CodeMetrics(code=history.code, factors=factors))

    logger.debug(
        f"{params.factor_set.value}: {len(metrics)} eligible, "
        f"{short_history} short history, {non_finite} non-finite"
    )
    return metrics
