"""Factor computation, percentile normalization and composite ranking."""

from scoreboard.quant.factors import (
    CodeMetrics,
    FactorSet,
    IntradayParams,
    MediumHorizonParams,
    compute_metrics,
    default_params,
)
from scoreboard.quant.normalize import factor_percentiles, percentile_rank
from scoreboard.quant.scoring import (
    ScoredItem,
    composite_score,
    rank_metrics,
    resolve_weights,
)

__all__ = [
    "CodeMetrics",
    "FactorSet",
    "IntradayParams",
    "MediumHorizonParams",
    "ScoredItem",
    "composite_score",
    "compute_metrics",
    "default_params",
    "factor_percentiles",
    "percentile_rank",
    "rank_metrics",
    "resolve_weights",
]
