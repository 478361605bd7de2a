"""
Tests for crm_forecaster/analytics/correlation.py.

What we test
------------
pearson_correlation():
  - y = 2x + 1 -> r = 1.0; y = -x -> r = -1.0; constant y -> 0.0.
  - Fewer than 2 valid pairs -> 0.0 without raising.
  - Non-finite values are dropped before computing.

scatter_points():
  - Coordinates clamped to [4, 96]; y measured from the top.

correlate_metrics():
  - Reads the requested metric attributes from each sample.
  - Unknown metric name -> ValueError.
"""

from __future__ import annotations

import math

import pytest

from crm_forecaster.analytics.correlation import (
    CorrelationMetric,
    correlate_metrics,
    pearson_correlation,
    scatter_points,
)
from crm_forecaster.models.analytics import CorrelationSample


# ── Pearson ───────────────────────────────────────────────────────────────────

class TestPearsonCorrelation:
    def test_perfect_positive(self) -> None:
        pairs = [(x, 2 * x + 1) for x in (1.0, 2.0, 3.0, 7.0)]
        assert pearson_correlation(pairs) == pytest.approx(1.0)

    def test_perfect_negative(self) -> None:
        pairs = [(x, -x) for x in (0.0, 1.0, 5.0)]
        assert pearson_correlation(pairs) == pytest.approx(-1.0)

    def test_constant_series_is_zero(self) -> None:
        assert pearson_correlation([(1.0, 3.0), (2.0, 3.0), (3.0, 3.0)]) == 0.0

    @pytest.mark.parametrize("pairs", [[], [(1.0, 2.0)]])
    def test_too_few_pairs(self, pairs) -> None:
        assert pearson_correlation(pairs) == 0.0

    def test_non_finite_dropped(self) -> None:
        pairs = [(1.0, 3.0), (2.0, 5.0), (float("nan"), 1.0), (3.0, float("inf")), (4.0, 9.0)]
        assert pearson_correlation(pairs) == pytest.approx(1.0)

    def test_never_nan(self) -> None:
        r = pearson_correlation([(1e308, 1e308), (-1e308, -1e308)])
        assert math.isfinite(r)

    def test_partial_correlation(self) -> None:
        r = pearson_correlation([(1, 1), (2, 3), (3, 2)])
        assert r == pytest.approx(0.5)


# ── Scatter ───────────────────────────────────────────────────────────────────

class TestScatterPoints:
    def test_clamped_coordinates(self) -> None:
        points = scatter_points([("a", 0.0, 0.0), ("b", 10.0, 20.0)])
        assert points[0].x_pct == 4.0
        assert points[0].y_pct == 96.0
        assert points[1].x_pct == 96.0
        assert points[1].y_pct == 4.0

    def test_midpoint(self) -> None:
        points = scatter_points([("a", 5.0, 5.0), ("b", 10.0, 10.0)])
        assert points[0].x_pct == pytest.approx(50.0)
        assert points[0].y_pct == pytest.approx(50.0)

    def test_all_zero_does_not_divide_by_zero(self) -> None:
        points = scatter_points([("a", 0.0, 0.0), ("b", 0.0, 0.0)])
        assert all(p.x_pct == 4.0 for p in points)


# ── Metric projection ─────────────────────────────────────────────────────────

class TestCorrelateMetrics:
    def test_reads_metrics(self) -> None:
        samples = [
            CorrelationSample(name="ana", tenure_months=6, total_sales=1_000),
            CorrelationSample(name="beto", tenure_months=12, total_sales=2_000),
            CorrelationSample(name="caro", tenure_months=24, total_sales=4_000),
        ]
        result = correlate_metrics(samples, "tenure_months", CorrelationMetric.TOTAL_SALES)
        assert result.x_metric == CorrelationMetric.TENURE_MONTHS
        assert result.r == pytest.approx(1.0)
        assert result.n_valid == 3
        assert [p.name for p in result.points] == ["ana", "beto", "caro"]

    def test_nan_sample_excluded(self) -> None:
        samples = [
            CorrelationSample(name="ana", forecast_accuracy=float("nan"), total_sales=1),
            CorrelationSample(name="beto", forecast_accuracy=50, total_sales=2),
        ]
        result = correlate_metrics(samples, "forecast_accuracy", "total_sales")
        assert result.n_valid == 1
        assert result.r == 0.0

    def test_unknown_metric(self) -> None:
        with pytest.raises(ValueError):
            correlate_metrics([], "height", "total_sales")
