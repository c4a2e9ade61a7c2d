"""
Composite scoring and ranking.

score = sum(w_i * p_i) / max(sum(w_i), 1e-9)

where p_i is the code's percentile on factor i. Scores therefore lie in
[0, 1]. Ranking is a stable descending sort, so equal scores keep the
input order.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from scoreboard.core.exceptions import ValidationError
from scoreboard.quant.factors import CodeMetrics
from scoreboard.quant.normalize import factor_percentiles

WEIGHT_FLOOR = 1e-9


@dataclass
class ScoredItem:
    """One leaderboard row."""

    rank: int
    code: str
    score: float
    factors: dict[str, float]
    company: dict[str, str] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "code": self.code,
            "company": self.company,
            "score": self.score,
            **self.factors,
        }


def resolve_weights(
    factors: Sequence[str],
    defaults: Mapping[str, float],
    overrides: Mapping[str, float] | None = None,
) -> dict[str, float]:
    """
    Merge caller weights over the defaults for a factor set.

    Raises:
        ValidationError: unknown factor name, or a weight that is negative
            or non-finite
    """
    weights = {name: float(defaults[name]) for name in factors}
    for name, raw in (overrides or {}).items():
        if name not in weights:
            raise ValidationError(
                message=f"Unknown weight {name!r}",
                details={"allowed": list(factors)},
            )
        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                message=f"Weight {name!r} must be a number", details={name: repr(raw)}
            ) from e
        if not math.isfinite(value) or value < 0:
            raise ValidationError(
                message=f"Weight {name!r} must be a non-negative number",
                details={name: raw},
            )
        weights[name] = value
    return weights


def composite_score(
    percentiles: Mapping[str, float],
    weights: Mapping[str, float],
) -> float:
    """Weighted mean of percentiles with the denominator floored away from zero."""
    total = sum(weights.values())
    weighted = sum(w * percentiles.get(name, 0.0) for name, w in weights.items())
    return weighted / max(total, WEIGHT_FLOOR)


def rank_metrics(
    metrics: Sequence[CodeMetrics],
    weights: Mapping[str, float],
    limit: int,
    companies: Mapping[str, dict[str, str]] | None = None,
) -> list[ScoredItem]:
    """
    Score every code, sort descending, keep the top ``limit`` and rank them.

    Args:
        metrics: Eligible codes with finite factor vectors
        weights: Non-negative weight per factor name
        limit: Maximum number of rows returned (>= 1)
        companies: Optional code -> company row used to decorate the output
    """
    if limit < 1:
        raise ValidationError(message="limit must be >= 1", details={"limit": limit})

    pct = factor_percentiles(metrics, list(weights))

    scored = []
    for m in metrics:
        per_factor = {name: pct[name][m.factors[name]] for name in weights}
        scored.append((composite_score(per_factor, weights), m))

    scored.sort(key=lambda pair: pair[0], reverse=True)

    items = []
    for position, (score, m) in enumerate(scored[:limit], start=1):
        items.append(
            ScoredItem(
                rank=position,
                code=m.code,
                score=score,
                factors=dict(m.factors),
                company=companies.get(m.code) if companies is not None else None,
            )
        )
    return items
