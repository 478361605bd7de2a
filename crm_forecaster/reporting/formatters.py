"""
Plain-text report blocks for the CLI.

Each ``format_*`` function takes a computation result and returns a
multi-line string for ``typer.echo()``.  Money is shown as whole currency
units with thousands separators; medals as ``[G]`` / ``[S]`` / ``[B]`` so the
output stays ASCII-safe in any terminal.
"""

from __future__ import annotations

from collections.abc import Sequence

from crm_forecaster.analytics.correlation import METRIC_LABELS, CorrelationResult
from crm_forecaster.analytics.postpone import PostponeBucket
from crm_forecaster.forecast.aggregator import ForecastSummary
from crm_forecaster.race.ranker import RankedRaceItem
from crm_forecaster.scoring.logloss import LogLossRow

_MEDAL_TAGS = {"gold": "[G]", "silver": "[S]", "bronze": "[B]"}


def format_money(value: float) -> str:
    """``1234567.8`` -> ``"$1,234,568"``."""
    return f"${value:,.0f}"


# ── Forecast ──────────────────────────────────────────────────────────────────


def format_forecast_summary(summary: ForecastSummary, top_n: int = 10) -> str:
    """Format the forecast dashboard: headline numbers, sellers and funnel.

    Sellers appear in the aggregator's order (negotiation pipeline
    descending); the adjusted column shows the reliability-weighted value.
    """
    lines: list[str] = []
    lines.append("")
    lines.append("=== Seller Forecast ===")
    lines.append(f"  Total pipeline:     {format_money(summary.total_pipeline)}")
    lines.append(f"  Adjusted forecast:  {format_money(summary.adjusted_forecast)}")
    lines.append(f"  Active deals:       {summary.active_count}")
    lines.append(
        f"  Team goal:          {format_money(summary.team_goal)} "
        f"({summary.goal_progress_pct:.0f}% reached)"
    )
    if summary.data_warnings:
        lines.append(f"  [WARN] {summary.data_warnings} active deal(s) without estimated value")

    lines.append("")
    lines.append("  [SELLERS]")
    if not summary.sellers:
        lines.append("    (no deals)")
    else:
        header = (
            f"    {'#':>3}  {'Seller':<24}  {'Pipeline':>14}  "
            f"{'Adjusted':>14}  {'Reliab.':>8}  {'Closed':>6}  {'Open':>5}"
        )
        lines.append(header)
        lines.append("    " + "-" * (len(header) - 4))
        for i, s in enumerate(summary.sellers[:top_n], start=1):
            lines.append(
                f"    {i:>3}  {s.name[:24]:<24}  {format_money(s.negotiation_pipeline):>14}  "
                f"{format_money(s.adjusted_value):>14}  {s.reliability_score:>8.1f}  "
                f"{s.historical_count:>6}  {s.active_count:>5}"
            )

    lines.append("")
    lines.append("  [FUNNEL]")
    for row in summary.funnel:
        lines.append(
            f"    {row.stage[:20]:<20}  {row.count:>5}  {format_money(row.value):>14}  {row.tone}"
        )

    return "\n".join(lines)


def format_logloss_table(rows: Sequence[LogLossRow]) -> str:
    """Format log-loss reliability rows (already sorted by score)."""
    lines: list[str] = ["", "=== Seller Reliability (log loss) ==="]
    if not rows:
        lines.append("  (no evaluated deals)")
        return "\n".join(lines)

    lines.append(
        f"  {'Seller':<24}  {'Deals':>5}  {'LogLoss':>8}  "
        f"{'Win%':>6}  {'AvgP':>6}  {'Score':>6}"
    )
    for r in rows:
        lines.append(
            f"  {r.name[:24]:<24}  {r.n_deals:>5}  {r.avg_logloss:>8.4f}  "
            f"{r.win_rate:>6.1f}  {r.avg_probability:>6.1f}  {r.score:>6.1f}"
        )
    return "\n".join(lines)


# ── Leaderboard ───────────────────────────────────────────────────────────────


def format_leaderboard(
    ranked: Sequence[RankedRaceItem],
    title: str = "Seller Race",
    name_attr: str = "name",
) -> str:
    """Format ranked race items as a leaderboard.

    ``name_attr`` names the attribute used as the row label; plain tuples
    fall back to their first element.
    """
    lines: list[str] = []
    lines.append("")
    lines.append(f"=== {title} ===")
    if not ranked:
        lines.append("  (no participants)")
        return "\n".join(lines)

    for r in ranked:
        label = getattr(r.item, name_attr, None) or getattr(r.item, "user_id", None)
        if label is None and isinstance(r.item, tuple):
            label = r.item[0]
        medal = _MEDAL_TAGS.get(r.medal.value, "") if r.medal else ""
        rank  = "-" if r.is_zero_value else str(r.rank)
        lines.append(f"  {rank:>3} {medal:<3}  {str(label)[:28]:<28}  {format_money(r.value):>14}")
    return "\n".join(lines)


# ── Analytics ─────────────────────────────────────────────────────────────────


def format_correlation(result: CorrelationResult) -> str:
    """Format a correlation result with its data points."""
    lines: list[str] = []
    lines.append("")
    lines.append("=== Correlation ===")
    lines.append(f"  X: {METRIC_LABELS[result.x_metric]}")
    lines.append(f"  Y: {METRIC_LABELS[result.y_metric]}")
    lines.append(f"  r = {result.r:.2f}  (n = {result.n_valid})")
    for p in result.points:
        lines.append(f"    {p.name[:24]:<24}  {p.x:>12.2f}  {p.y:>12.2f}")
    return "\n".join(lines)


def format_postpone_table(buckets: Sequence[PostponeBucket]) -> str:
    """Format postpone probability per company size.

    Buckets without meetings are marked ``no data`` rather than shown as 0%.
    """
    lines: list[str] = []
    lines.append("")
    lines.append("=== Postpone Probability by Company Size ===")
    header = f"  {'Size':>4}  {'Total':>6}  {'Held':>6}  {'Postp.':>6}  {'Prob.':>8}"
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for b in buckets:
        prob = f"{b.probability:.1f}%" if b.has_signal else "no data"
        lines.append(
            f"  {b.size:>4}  {b.total:>6}  {b.held:>6}  {b.postponed:>6}  {prob:>8}"
        )
    return "\n".join(lines)
