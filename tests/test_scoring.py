"""Tests for percentile normalization and composite ranking."""

import random

import pytest

from scoreboard.core.exceptions import ValidationError
from scoreboard.quant.factors import CodeMetrics, MediumHorizonParams
from scoreboard.quant.normalize import factor_percentiles, percentile_rank
from scoreboard.quant.scoring import (
    ScoredItem,
    composite_score,
    rank_metrics,
    resolve_weights,
)


class TestPercentileRank:
    def test_ties_share_average_rank(self):
        assert percentile_rank([1, 2, 2, 4, 5]) == pytest.approx(
            {1: 0.2, 2: 0.5, 4: 0.8, 5: 1.0}
        )

    def test_bounds(self):
        rng = random.Random(7)
        values = [rng.uniform(-1, 1) for _ in range(50)]
        pct = percentile_rank(values)
        assert min(pct.values()) == pytest.approx(1 / 50)
        assert max(pct.values()) == pytest.approx(1.0)

    def test_all_tied(self):
        assert percentile_rank([3.0, 3.0, 3.0]) == {3.0: pytest.approx(2 / 3)}

    def test_single_value(self):
        assert percentile_rank([42.0]) == {42.0: 1.0}

    def test_empty_and_non_finite(self):
        assert percentile_rank([]) == {}
        assert percentile_rank([float("nan"), 1.0, float("inf")]) == {1.0: 1.0}

    def test_factor_percentiles(self):
        metrics = [
            CodeMetrics(code="A", factors={"x": 1.0, "y": 10.0}),
            CodeMetrics(code="B", factors={"x": 2.0, "y": 5.0}),
        ]
        pct = factor_percentiles(metrics, ["x", "y"])
        assert pct == {"x": {1.0: 0.5, 2.0: 1.0}, "y": {10.0: 1.0, 5.0: 0.5}}


class TestWeights:
    def test_defaults_and_overrides(self):
        params = MediumHorizonParams()
        weights = resolve_weights(params.factors, params.default_weights, {"ret_mean": 1})
        assert weights == {
            "ret_mean": 1.0,
            "volchg_ratio": 0.25,
            "volat_rto_mean": 0.2,
            "mom_n_days": 0.2,
        }

    @pytest.mark.parametrize("bad", [-0.1, float("nan"), float("inf"), "abc", None])
    def test_rejects_bad_weights(self, bad):
        params = MediumHorizonParams()
        with pytest.raises(ValidationError):
            resolve_weights(params.factors, params.default_weights, {"ret_mean": bad})

    def test_rejects_unknown_weight(self):
        params = MediumHorizonParams()
        with pytest.raises(ValidationError):
            resolve_weights(params.factors, params.default_weights, {"gap_ratio": 0.5})


class TestCompositeScore:
    def test_weighted_mean(self):
        score = composite_score({"a": 1.0, "b": 0.5}, {"a": 3.0, "b": 1.0})
        assert score == pytest.approx((3.0 + 0.5) / 4.0)

    def test_zero_weights_floor(self):
        assert composite_score({"a": 1.0}, {"a": 0.0}) == 0.0


def _universe(n: int = 30, seed: int = 1) -> list[CodeMetrics]:
    rng = random.Random(seed)
    return [
        CodeMetrics(code=f"{1000 + i}", factors={"x": rng.random(), "y": rng.random()})
        for i in range(n)
    ]


class TestRankMetrics:
    def test_scores_in_unit_interval_and_sorted(self):
        items = rank_metrics(_universe(), {"x": 0.7, "y": 0.3}, limit=100)

        assert len(items) == 30
        assert all(0.0 <= item.score <= 1.0 for item in items)
        scores = [item.score for item in items]
        assert scores == sorted(scores, reverse=True)
        assert [item.rank for item in items] == list(range(1, 31))

    def test_truncate_then_rank(self):
        items = rank_metrics(_universe(), {"x": 1.0, "y": 1.0}, limit=5)
        assert [item.rank for item in items] == [1, 2, 3, 4, 5]

    def test_single_factor_order(self):
        metrics = [
            CodeMetrics(code="A", factors={"x": 1.0}),
            CodeMetrics(code="B", factors={"x": 3.0}),
            CodeMetrics(code="C", factors={"x": 2.0}),
        ]
        items = rank_metrics(metrics, {"x": 1.0}, limit=10)
        assert [(i.code, i.score) for i in items] == [
            ("B", pytest.approx(1.0)),
            ("C", pytest.approx(2 / 3)),
            ("A", pytest.approx(1 / 3)),
        ]

    def test_ties_keep_input_order(self):
        metrics = [
            CodeMetrics(code="A", factors={"x": 1.0}),
            CodeMetrics(code="B", factors={"x": 1.0}),
            CodeMetrics(code="C", factors={"x": 1.0}),
        ]
        items = rank_metrics(metrics, {"x": 1.0}, limit=10)
        assert [i.code for i in items] == ["A", "B", "C"]

    def test_deterministic(self):
        first = rank_metrics(_universe(seed=3), {"x": 0.4, "y": 0.6}, limit=10)
        second = rank_metrics(_universe(seed=3), {"x": 0.4, "y": 0.6}, limit=10)
        assert [(i.code, i.score) for i in first] == [(i.code, i.score) for i in second]

    def test_company_attached(self):
        metrics = [CodeMetrics(code="7203", factors={"x": 1.0}), CodeMetrics(code="6758", factors={"x": 2.0})]
        companies = {"7203": {"Code": "72030", "CompanyName": "Toyota"}}

        items = rank_metrics(metrics, {"x": 1.0}, limit=10, companies=companies)

        by_code = {i.code: i for i in items}
        assert by_code["7203"].company["CompanyName"] == "Toyota"
        assert by_code["6758"].company is None

    def test_invalid_limit(self):
        with pytest.raises(ValidationError):
            rank_metrics(_universe(), {"x": 1.0, "y": 1.0}, limit=0)

    def test_empty_universe(self):
        assert rank_metrics([], {"x": 1.0}, limit=10) == []

    def test_item_to_dict(self):
        item = ScoredItem(rank=1, code="7203", score=0.9, factors={"x": 0.5})
        assert item.to_dict() == {"rank": 1, "code": "7203", "company": None, "score": 0.9, "x": 0.5}
