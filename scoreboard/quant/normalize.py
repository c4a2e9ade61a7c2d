"""Cross-sectional percentile normalization."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np
import pandas as pd

from scoreboard.quant.factors import CodeMetrics


def percentile_rank(values: Iterable[float]) -> dict[float, float]:
    """
    Map each distinct finite value to its rank percentile in (0, 1].

    Ties share the mean of their rank positions, so for ``[1, 2, 2, 4, 5]``
    the result is ``{1: 0.2, 2: 0.5, 4: 0.8, 5: 1.0}``. Non-finite inputs
    are ignored.
    """
    series = pd.Series(list(values), dtype="float64")
    series = series[np.isfinite(series)]
    if series.empty:
        return {}

    pct = series.rank(method="average", pct=True)
    return dict(zip(series.tolist(), pct.tolist()))


def factor_percentiles(
    metrics: Sequence[CodeMetrics],
    factors: Sequence[str],
) -> dict[str, dict[float, float]]:
    """Percentile maps for each factor over the eligible universe."""
    return {
        name: percentile_rank(m.factors[name] for m in metrics)
        for name in factors
    }
