"""
Tests for crm_forecaster/cli.py.

Commands are invoked through ``typer.testing.CliRunner`` against small JSON /
CSV files written to ``tmp_path``.

What we test
------------
  - validate-config prints parsed values and [OK]; bad config exits 1.
  - forecast prints the summary and writes --output JSON.
  - reliability prints per-seller log-loss rows.
  - leaderboard ranks --entries, or the monthly race from --deals.
  - correlate prints r; unknown metric exits 1.
  - correlate derives samples from --employees + --deals (+ --meetings).
  - postpone prints the size table.
  - Missing / invalid input files exit 1 with an [ERROR] message.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from crm_forecaster.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def deals_file(write_json) -> Path:
    return write_json("deals.json", [
        {"deal_id": 1, "owner_id": "u1", "owner_name": "ana", "stage": "Cerrado Ganado",
         "estimated_value": 5000, "forecast_evaluated_probability": 80, "forecast_outcome": 1,
         "forecast_scored_at": "2025-01-10T00:00:00Z", "updated_at": "2025-01-10T00:00:00Z"},
        {"deal_id": 2, "owner_id": "u1", "owner_name": "ana", "stage": "Cerrado Perdido",
         "estimated_value": 1000, "updated_at": "2025-01-12T00:00:00Z"},
        {"deal_id": 3, "owner_id": "u2", "owner_name": "beto", "stage": "Cerrado Ganado",
         "estimated_value": 7000, "forecast_evaluated_probability": 40, "forecast_outcome": 1,
         "updated_at": "2025-02-03T00:00:00Z"},
        {"deal_id": 4, "owner_id": "u1", "owner_name": "ana", "stage": "Negociación",
         "estimated_value": 10000, "probability": 50},
    ])


# ── validate-config ───────────────────────────────────────────────────────────

class TestValidateConfig:
    def test_default(self) -> None:
        result = runner.invoke(app, ["validate-config"])
        assert result.exit_code == 0
        assert "Negociación" in result.output
        assert "[OK] Config valid." in result.output

    def test_full(self) -> None:
        result = runner.invoke(app, ["validate-config", "--full"])
        assert result.exit_code == 0
        assert '"shrinkage": 4.0' in result.output

    def test_invalid(self, tmp_path: Path) -> None:
        cfg = tmp_path / "bad.toml"
        cfg.write_text("[reliability]\nshrinkage = -1\n", encoding="utf-8")
        result = runner.invoke(app, ["validate-config", "--config", str(cfg)])
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "x.toml")])
        assert result.exit_code == 1


# ── forecast / reliability ────────────────────────────────────────────────────

class TestForecast:
    def test_summary_and_export(self, deals_file: Path, tmp_path: Path) -> None:
        out = tmp_path / "forecast.json"
        result = runner.invoke(app, ["forecast", "--deals", str(deals_file), "--output", str(out)])
        assert result.exit_code == 0, result.output
        assert "=== Seller Forecast ===" in result.output
        assert "$10,000" in result.output
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["sellers"][0]["name"] == "ana"
        assert data["sellers"][0]["negotiation_pipeline"] == 5000.0

    def test_with_history(self, deals_file: Path, write_json) -> None:
        history = write_json("history.json", [
            {"deal_id": 2, "new_value": "20", "created_at": "2025-01-05T00:00:00Z"},
        ])
        result = runner.invoke(
            app, ["forecast", "--deals", str(deals_file), "--history", str(history)],
        )
        assert result.exit_code == 0, result.output

    def test_missing_deals_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["forecast", "--deals", str(tmp_path / "none.json")])
        assert result.exit_code == 1
        assert "[ERROR]" in result.output

    def test_invalid_rows(self, write_json) -> None:
        bad = write_json("bad.json", [{"deal_id": 1, "probability": 500}])
        result = runner.invoke(app, ["forecast", "--deals", str(bad)])
        assert result.exit_code == 1
        assert "failed validation" in result.output


def test_reliability(deals_file: Path) -> None:
    result = runner.invoke(app, ["reliability", "--deals", str(deals_file)])
    assert result.exit_code == 0, result.output
    assert "Seller Reliability" in result.output
    assert "ana" in result.output
    assert "beto" in result.output


# ── leaderboard ───────────────────────────────────────────────────────────────

class TestLeaderboard:
    def test_entries(self, tmp_path: Path) -> None:
        entries = tmp_path / "entries.csv"
        entries.write_text("name,value\nana,100\nbeto,100\ncaro,80\ndani,0\n", encoding="utf-8")
        result = runner.invoke(app, ["leaderboard", "--entries", str(entries)])
        assert result.exit_code == 0, result.output
        assert result.output.count("[G]") == 2
        assert "[B]" in result.output
        assert "[S]" not in result.output

    def test_latest_month_from_deals(self, deals_file: Path) -> None:
        result = runner.invoke(app, ["leaderboard", "--deals", str(deals_file)])
        assert result.exit_code == 0, result.output
        assert "Carrera de Febrero 2025" in result.output
        assert "beto" in result.output

    def test_period(self, deals_file: Path, tmp_path: Path) -> None:
        out = tmp_path / "race.json"
        result = runner.invoke(
            app,
            ["leaderboard", "--deals", str(deals_file), "--period", "2025-01", "--output", str(out)],
        )
        assert result.exit_code == 0, result.output
        assert "Carrera de Enero 2025" in result.output
        rows = json.loads(out.read_text(encoding="utf-8"))
        assert rows[0]["user_id"] == "u1"
        assert rows[0]["medal"] == "gold"

    def test_bad_period(self, deals_file: Path) -> None:
        result = runner.invoke(
            app, ["leaderboard", "--deals", str(deals_file), "--period", "enero"],
        )
        assert result.exit_code == 1

    def test_requires_exactly_one_source(self) -> None:
        result = runner.invoke(app, ["leaderboard"])
        assert result.exit_code == 1
        assert "exactly one" in result.output


# ── analytics ─────────────────────────────────────────────────────────────────

class TestCorrelate:
    def test_prints_r(self, write_json) -> None:
        samples = write_json("samples.json", [
            {"name": "ana", "tenure_months": 3, "total_sales": 10},
            {"name": "beto", "tenure_months": 6, "total_sales": 20},
            {"name": "caro", "tenure_months": 9, "total_sales": 30},
        ])
        result = runner.invoke(app, ["correlate", "--samples", str(samples)])
        assert result.exit_code == 0, result.output
        assert "r = 1.00" in result.output

    def test_from_employees_and_deals(self, deals_file: Path, write_json, tmp_path: Path) -> None:
        staff = tmp_path / "staff.csv"
        staff.write_text(
            "user_id,full_name,start_date\nu1,Ana,2024-01-01\nu2,Beto,\n", encoding="utf-8",
        )
        meetings = write_json("meetings.json", [
            {"meeting_id": 1, "company_size": 2, "status": "held", "seller_id": "u1"},
        ])
        result = runner.invoke(app, [
            "correlate", "--employees", str(staff), "--deals", str(deals_file),
            "--meetings", str(meetings), "--y", "meetings_per_close",
        ])
        assert result.exit_code == 0, result.output
        assert "Ana" in result.output
        assert "Beto" in result.output
        assert "(n = 2)" in result.output

    def test_employees_require_deals(self, tmp_path: Path) -> None:
        staff = tmp_path / "staff.csv"
        staff.write_text("user_id\nu1\n", encoding="utf-8")
        result = runner.invoke(app, ["correlate", "--employees", str(staff)])
        assert result.exit_code == 1
        assert "requires --deals" in result.output

    def test_requires_one_source(self) -> None:
        result = runner.invoke(app, ["correlate"])
        assert result.exit_code == 1
        assert "exactly one" in result.output

    def test_unknown_metric(self, write_json) -> None:
        samples = write_json("samples.json", [])
        result = runner.invoke(app, ["correlate", "--samples", str(samples), "--x", "height"])
        assert result.exit_code == 1
        assert "Unknown metric" in result.output


def test_postpone(write_json) -> None:
    meetings = write_json("meetings.json", [
        {"meeting_id": 1, "company_size": 2, "status": "held"},
        {"meeting_id": 2, "company_size": 2, "status": "cancelled"},
    ])
    result = runner.invoke(app, ["postpone", "--meetings", str(meetings), "--size", "2"])
    assert result.exit_code == 0, result.output
    assert "50.0%" in result.output
    assert "no data" not in result.output


def test_reliability_csv_export(deals_file: Path, tmp_path: Path) -> None:
    out = tmp_path / "reliability.csv"
    result = runner.invoke(app, ["reliability", "--deals", str(deals_file), "--output", str(out)])
    assert result.exit_code == 0, result.output
    header = out.read_text(encoding="utf-8").splitlines()[0]
    assert header.startswith("name,n_deals,avg_logloss")
