"""
CRM Forecaster — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Load and validate input record files.
  4. Run the computation.
  5. Report result to stdout (and optionally export JSON).

Install and run::

    pip install -e .
    crm-forecaster --help
    crm-forecaster validate-config
    crm-forecaster forecast --deals deals.json --history history.json
    crm-forecaster leaderboard --deals deals.json --period 2025-03
    crm-forecaster correlate --samples sellers.csv --x tenure_months --y total_sales
    crm-forecaster correlate --employees staff.csv --deals deals.json --meetings meetings.json
    crm-forecaster postpone --meetings meetings.json
"""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="crm-forecaster",
    help="Seller reliability, forecast, leaderboard and correlation analytics.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from pydantic import ValidationError

    from crm_forecaster.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from crm_forecaster.utils.logging import configure_logging
    configure_logging(config.logging)


def _load_or_exit(loader, path: str):
    """Run a record loader, turning load errors into a clean exit."""
    try:
        return loader(Path(path))
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)


def _export(result, output: Optional[str], rows=None) -> None:
    """Write ``result`` to ``output``: CSV (``rows``, else ``result``) or JSON by suffix."""
    if not output:
        return
    from crm_forecaster.reporting.export import export_to_csv, export_to_json

    path = Path(output)
    if path.suffix.lower() == ".csv":
        written = export_to_csv(rows if rows is not None else result, path)
    else:
        written = export_to_json(result, path)
    typer.echo(f"  Exported: {written}")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Pipeline stages:   {', '.join(config.stages.pipeline)}")
    typer.echo(f"  Negotiation stage: {config.stages.negotiation}")
    typer.echo(f"  Shrinkage (k):     {config.reliability.shrinkage}")
    typer.echo(f"  Goal multiplier:   {config.forecast.goal_multiplier}")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str, ensure_ascii=False))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("forecast")
def forecast(
    deals_file: str = typer.Option(..., "--deals", help="Deals file (JSON or CSV)."),
    history_file: Optional[str] = typer.Option(
        None,
        "--history",
        help="Probability-change history file (JSON or CSV).",
    ),
    top_n: int = typer.Option(10, "--top", help="Sellers to show."),
    output: Optional[str] = typer.Option(None, "--output", help="Write result JSON here."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Score seller reliability and print the risk-adjusted forecast."""
    from crm_forecaster.forecast.aggregator import build_seller_forecast
    from crm_forecaster.ingestion.records import load_deals, load_probability_changes
    from crm_forecaster.reporting.formatters import format_forecast_summary
    from crm_forecaster.scoring.reliability import latest_probability_lookup

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    deals = _load_or_exit(load_deals, deals_file)
    lookup = None
    if history_file:
        lookup = latest_probability_lookup(_load_or_exit(load_probability_changes, history_file))

    stages = config.stages
    summary = build_seller_forecast(
        deals,
        lookup,
        stage_list=stages.pipeline,
        negotiation_stage=stages.negotiation,
        won_markers=stages.won_markers,
        lost_markers=stages.lost_markers,
        shrinkage=config.reliability.shrinkage,
        goal_multiplier=config.forecast.goal_multiplier,
        default_goal=config.forecast.default_team_goal,
    )

    typer.echo(format_forecast_summary(summary, top_n=top_n))
    _export(summary, output, rows=summary.sellers)


@app.command("reliability")
def reliability(
    deals_file: str = typer.Option(..., "--deals", help="Deals file (JSON or CSV)."),
    days: Optional[int] = typer.Option(
        None,
        "--days",
        help="Only deals scored in the last N days (e.g. 30, 90, 180).",
    ),
    seller: Optional[str] = typer.Option(None, "--seller", help="Only this seller."),
    output: Optional[str] = typer.Option(None, "--output", help="Write rows to .csv or .json."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Print log-loss reliability per seller against the win-rate baseline."""
    from crm_forecaster.ingestion.records import load_deals
    from crm_forecaster.reporting.formatters import format_logloss_table
    from crm_forecaster.scoring.logloss import (
        compute_logloss_reliability,
        filter_evaluated_deals,
    )

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    deals = _load_or_exit(load_deals, deals_file)
    selected = filter_evaluated_deals(deals, days=days, seller=seller)
    rel = config.reliability
    rows = compute_logloss_reliability(
        deals, selected, rel.default_win_rate, rel.win_rate_floor, rel.win_rate_ceiling,
    )

    typer.echo(format_logloss_table(rows))
    _export(rows, output)


@app.command("leaderboard")
def leaderboard(
    entries_file: Optional[str] = typer.Option(
        None,
        "--entries",
        help="Name/value rows to rank (JSON or CSV).",
    ),
    deals_file: Optional[str] = typer.Option(
        None,
        "--deals",
        help="Deals file; ranks the monthly race of closed-won deals.",
    ),
    period: Optional[str] = typer.Option(
        None,
        "--period",
        help="Race month YYYY-MM (with --deals; default: latest).",
    ),
    output: Optional[str] = typer.Option(None, "--output", help="Write result JSON here."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Rank sellers with competition ranking and medals."""
    from crm_forecaster.ingestion.records import load_deals, load_race_entries
    from crm_forecaster.race.ranker import rank_race_items
    from crm_forecaster.race.results import (
        build_monthly_race_results,
        group_races_by_period,
    )
    from crm_forecaster.reporting.formatters import format_leaderboard

    if (entries_file is None) == (deals_file is None):
        typer.echo("[ERROR] Pass exactly one of --entries or --deals.", err=True)
        raise typer.Exit(code=1)

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    if entries_file:
        entries = _load_or_exit(load_race_entries, entries_file)
        ranked = rank_race_items(entries, lambda e: e.value, config.race.min_unranked_rank)
        typer.echo(format_leaderboard(ranked))
        _export(
            ranked,
            output,
            rows=[
                {"rank": r.rank, "name": r.item.name, "value": r.value,
                 "medal": r.medal.value if r.medal else ""}
                for r in ranked
            ],
        )
        return

    deals = _load_or_exit(load_deals, deals_file)
    results = build_monthly_race_results(
        deals,
        {d.owner_id: d.owner_name for d in deals if d.owner_id and d.owner_name},
        won_markers=config.stages.won_markers,
        min_unranked_rank=config.race.min_unranked_rank,
    )
    races = group_races_by_period(results)
    if not races:
        typer.echo("  (no closed-won deals)")
        return

    if period:
        try:
            year, month = (int(p) for p in period.split("-"))
            key = date(year, month, 1)
        except ValueError:
            typer.echo(f"[ERROR] Invalid --period '{period}', expected YYYY-MM.", err=True)
            raise typer.Exit(code=1)
    else:
        key = next(iter(races))

    rows = races.get(key, [])
    title = rows[0].title if rows else f"Carrera {key:%Y-%m}"
    ranked = rank_race_items(rows, lambda r: r.total_sales, config.race.min_unranked_rank)
    typer.echo(format_leaderboard(ranked, title=title))
    _export(rows, output)


@app.command("correlate")
def correlate(
    samples_file: Optional[str] = typer.Option(
        None,
        "--samples",
        help="Precomputed seller metric rows (JSON or CSV).",
    ),
    employees_file: Optional[str] = typer.Option(
        None,
        "--employees",
        help="Employee profiles; derive samples together with --deals.",
    ),
    deals_file: Optional[str] = typer.Option(
        None, "--deals", help="Deals file (with --employees).",
    ),
    meetings_file: Optional[str] = typer.Option(
        None, "--meetings", help="Meetings file for meetings per close (with --employees).",
    ),
    history_file: Optional[str] = typer.Option(
        None, "--history", help="Probability change history (with --employees).",
    ),
    x_metric: str = typer.Option("tenure_months", "--x", help="X-axis metric."),
    y_metric: str = typer.Option("total_sales", "--y", help="Y-axis metric."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Pearson correlation between two seller metrics."""
    from crm_forecaster.analytics.correlation import CorrelationMetric, correlate_metrics
    from crm_forecaster.analytics.performance import samples_from_records
    from crm_forecaster.ingestion.records import (
        load_correlation_samples,
        load_deals,
        load_employees,
        load_meetings,
        load_probability_changes,
    )
    from crm_forecaster.reporting.formatters import format_correlation
    from crm_forecaster.scoring.reliability import latest_probability_lookup

    if (samples_file is None) == (employees_file is None):
        typer.echo("[ERROR] Pass exactly one of --samples or --employees.", err=True)
        raise typer.Exit(code=1)
    if employees_file and not deals_file:
        typer.echo("[ERROR] --employees requires --deals.", err=True)
        raise typer.Exit(code=1)

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    valid = [m.value for m in CorrelationMetric]
    for metric in (x_metric, y_metric):
        if metric not in valid:
            typer.echo(f"[ERROR] Unknown metric '{metric}'. Valid: {', '.join(valid)}", err=True)
            raise typer.Exit(code=1)

    if samples_file:
        samples = _load_or_exit(load_correlation_samples, samples_file)
    else:
        lookup = None
        if history_file:
            changes = _load_or_exit(load_probability_changes, history_file)
            lookup = latest_probability_lookup(changes)
        samples = samples_from_records(
            _load_or_exit(load_employees, employees_file),
            _load_or_exit(load_deals, deals_file),
            _load_or_exit(load_meetings, meetings_file) if meetings_file else (),
            probability_history_lookup=lookup,
            won_markers=config.stages.won_markers,
            lost_markers=config.stages.lost_markers,
            min_unranked_rank=config.race.min_unranked_rank,
        )
    typer.echo(format_correlation(correlate_metrics(samples, x_metric, y_metric)))


@app.command("postpone")
def postpone(
    meetings_file: str = typer.Option(..., "--meetings", help="Meetings file (JSON or CSV)."),
    size: Optional[int] = typer.Option(None, "--size", help="Show only this company size."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Postpone/cancel probability by client company size."""
    from crm_forecaster.analytics.postpone import (
        bucket_postpone_probability,
        group_meetings_by_size,
    )
    from crm_forecaster.ingestion.records import load_meetings
    from crm_forecaster.reporting.formatters import format_postpone_table

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    meetings = _load_or_exit(load_meetings, meetings_file)
    buckets = bucket_postpone_probability(
        group_meetings_by_size(meetings), config.analytics.company_sizes,
    )
    if size is not None:
        buckets = [b for b in buckets if b.size == size]
    typer.echo(format_postpone_table(buckets))


if __name__ == "__main__":
    app()
