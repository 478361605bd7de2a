"""
Pearson correlation between two seller metrics.

The samples are small (one row per seller, typically < 30), so this is the
plain product-moment formula rather than a statistics library call::

  r = (n Σxy - Σx Σy) / sqrt((n Σx² - (Σx)²) (n Σy² - (Σy)²))

Degenerate input never raises and never returns NaN:
  - pairs with a non-finite x or y are dropped first;
  - fewer than 2 remaining pairs -> 0.0;
  - zero or non-finite denominator (a constant series) -> 0.0.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from crm_forecaster.models.analytics import CorrelationSample

MIN_PAIRS = 2

SCATTER_MIN_PCT = 4.0
SCATTER_MAX_PCT = 96.0


class CorrelationMetric(StrEnum):
    """Seller metrics available on either scatter axis."""

    TENURE_MONTHS      = "tenure_months"
    TOTAL_SALES        = "total_sales"
    FORECAST_ACCURACY  = "forecast_accuracy"
    MEETINGS_PER_CLOSE = "meetings_per_close"


METRIC_LABELS: dict[CorrelationMetric, str] = {
    CorrelationMetric.TENURE_MONTHS:      "Antigüedad (meses)",
    CorrelationMetric.TOTAL_SALES:        "Ventas Totales",
    CorrelationMetric.FORECAST_ACCURACY:  "Forecast Accuracy (%)",
    CorrelationMetric.MEETINGS_PER_CLOSE: "Meetings por Cierre",
}


@dataclass(frozen=True)
class ScatterPoint:
    """One seller on the scatter plot.

    ``x_pct`` / ``y_pct`` are display coordinates in percent of the plot
    area; ``y_pct`` is measured from the top.
    """

    name: str
    x: float
    y: float
    x_pct: float
    y_pct: float


@dataclass(frozen=True)
class CorrelationResult:
    """Correlation of two metrics over a seller population."""

    x_metric: CorrelationMetric
    y_metric: CorrelationMetric
    r: float
    n_valid: int
    points: list[ScatterPoint]


def _is_finite(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def pearson_correlation(pairs: Iterable[tuple[float, float]]) -> float:
    """Pearson's r over (x, y) pairs; 0.0 for degenerate input."""
    valid = [(x, y) for x, y in pairs if _is_finite(x) and _is_finite(y)]
    n = len(valid)
    if n < MIN_PAIRS:
        return 0.0

    sum_x  = sum(x for x, _ in valid)
    sum_y  = sum(y for _, y in valid)
    sum_xy = sum(x * y for x, y in valid)
    sum_x2 = sum(x * x for x, _ in valid)
    sum_y2 = sum(y * y for _, y in valid)

    numerator = n * sum_xy - sum_x * sum_y
    variance_product = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)
    if not math.isfinite(variance_product) or variance_product <= 0:
        return 0.0
    denominator = math.sqrt(variance_product)
    if not math.isfinite(denominator) or denominator == 0:
        return 0.0
    return numerator / denominator


def _clamp_pct(value: float) -> float:
    return max(SCATTER_MIN_PCT, min(SCATTER_MAX_PCT, value))


def scatter_points(pairs: Sequence[tuple[str, float, float]]) -> list[ScatterPoint]:
    """Normalise named (x, y) pairs to clamped percent coordinates.

    Axes are scaled against ``max(1, max value)`` so an all-zero or tiny
    series does not blow up.
    """
    finite = [(name, x, y) for name, x, y in pairs if _is_finite(x) and _is_finite(y)]
    max_x = max([1.0, *(x for _, x, _ in finite)])
    max_y = max([1.0, *(y for _, _, y in finite)])
    return [
        ScatterPoint(
            name=name,
            x=x,
            y=y,
            x_pct=_clamp_pct(x / max_x * 100),
            y_pct=_clamp_pct(100 - y / max_y * 100),
        )
        for name, x, y in finite
    ]


def correlate_metrics(
    samples: Iterable[CorrelationSample],
    x_metric: CorrelationMetric | str,
    y_metric: CorrelationMetric | str,
) -> CorrelationResult:
    """Correlate two metrics across ``samples`` and build scatter points.

    Raises:
        ValueError: If either metric name is unknown.
    """
    x_key = CorrelationMetric(x_metric)
    y_key = CorrelationMetric(y_metric)

    named = [
        (s.name, float(getattr(s, x_key.value)), float(getattr(s, y_key.value)))
        for s in samples
    ]
    points = scatter_points(named)
    return CorrelationResult(
        x_metric=x_key,
        y_metric=y_key,
        r=pearson_correlation((p.x, p.y) for p in points),
        n_valid=len(points),
        points=points,
    )
