"""
Tests for crm_forecaster/reporting/formatters.py.

What we test
------------
  - Forecast summary shows totals, warnings, sellers and funnel blocks.
  - Leaderboard shows medal tags and "-" for unranked zero-value rows.
  - Correlation output shows r to two decimals with n.
  - Postpone table marks empty buckets as "no data".
"""

from __future__ import annotations

from crm_forecaster.analytics.correlation import correlate_metrics
from crm_forecaster.analytics.postpone import PostponeBucket
from crm_forecaster.forecast.aggregator import aggregate_forecast
from crm_forecaster.models.analytics import CorrelationSample
from crm_forecaster.models.race import RaceEntry
from crm_forecaster.race.ranker import rank_race_items
from crm_forecaster.reporting.formatters import (
    format_correlation,
    format_forecast_summary,
    format_leaderboard,
    format_logloss_table,
    format_money,
    format_postpone_table,
)
from crm_forecaster.scoring.logloss import LogLossRow


def test_format_money() -> None:
    assert format_money(1234567.8) == "$1,234,568"
    assert format_money(0) == "$0"


class TestForecastSummary:
    def test_blocks_present(self, sample_deals) -> None:
        text = format_forecast_summary(aggregate_forecast(sample_deals, {"ana": 50.0}))
        assert "=== Seller Forecast ===" in text
        assert "$32,000" in text
        assert "[WARN] 1 active deal(s)" in text
        assert "[SELLERS]" in text
        assert "[FUNNEL]" in text
        assert "in_progress" in text

    def test_no_deals(self) -> None:
        text = format_forecast_summary(aggregate_forecast([], {}))
        assert "(no deals)" in text
        assert "[WARN]" not in text

    def test_top_n(self, sample_deals) -> None:
        text = format_forecast_summary(aggregate_forecast(sample_deals, {}), top_n=1)
        assert " beto " in text
        assert " ana " not in text


class TestLeaderboard:
    def test_medals_and_unranked(self) -> None:
        entries = [RaceEntry(name="ana", value=100), RaceEntry(name="beto", value=100),
                   RaceEntry(name="caro", value=0)]
        text = format_leaderboard(rank_race_items(entries, lambda e: e.value), title="Marzo")
        assert "=== Marzo ===" in text
        assert text.count("[G]") == 2
        assert "[S]" not in text
        caro_line = next(line for line in text.splitlines() if "caro" in line)
        assert caro_line.strip().startswith("-")

    def test_tuple_items(self) -> None:
        text = format_leaderboard(rank_race_items([("u1", 5.0)], lambda kv: kv[1]))
        assert "u1" in text

    def test_empty(self) -> None:
        assert "(no participants)" in format_leaderboard([])


def test_format_correlation() -> None:
    samples = [CorrelationSample(name=n, tenure_months=x, total_sales=2 * x)
               for n, x in (("ana", 1), ("beto", 2), ("caro", 3))]
    text = format_correlation(correlate_metrics(samples, "tenure_months", "total_sales"))
    assert "r = 1.00" in text
    assert "(n = 3)" in text
    assert "Antigüedad (meses)" in text


def test_format_postpone_table() -> None:
    buckets = [
        PostponeBucket(size=1, total=4, held=3, postponed=1, probability=25.0),
        PostponeBucket(size=2, total=0, held=0, postponed=0, probability=0.0),
    ]
    text = format_postpone_table(buckets)
    assert "25.0%" in text
    assert "no data" in text


def test_format_logloss_table() -> None:
    rows = [LogLossRow(name="ana", n_deals=4, avg_logloss=0.2, win_rate=50.0,
                       avg_probability=55.0, score=71.2)]
    text = format_logloss_table(rows)
    assert "Seller Reliability" in text
    assert "0.2000" in text
    assert "71.2" in text
    assert "(no evaluated deals)" in format_logloss_table([])
