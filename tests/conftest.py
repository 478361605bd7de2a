"""
Shared pytest fixtures for the CRM Forecaster test suite.

Provides:
  - ``make_deal``: factory for ``Deal`` with sensible defaults.
  - ``sample_deals``: a small two-seller book with open and closed deals.
  - ``sample_meetings``: meetings spread across company sizes.
  - ``write_json``: helper that dumps rows to a JSON file under ``tmp_path``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from crm_forecaster.models.analytics import Meeting
from crm_forecaster.models.deal import Deal
from crm_forecaster.taxonomy.deal_taxonomy import MeetingStatus


# ── Domain object factories ───────────────────────────────────────────────────

@pytest.fixture
def make_deal() -> Callable[..., Deal]:
    """Return a ``Deal`` factory; keyword arguments override the defaults."""
    counter = {"next": 1}

    def _make(**overrides: Any) -> Deal:
        fields: dict[str, Any] = {
            "deal_id": counter["next"],
            "owner_id": "u1",
            "owner_name": "ana",
            "stage": "Negociación",
            "estimated_value": 1000.0,
            "probability": 50,
        }
        fields.update(overrides)
        counter["next"] += 1
        return Deal(**fields)

    return _make


@pytest.fixture
def sample_deals(make_deal) -> list[Deal]:
    """Two sellers: ana has a track record, beto only open deals."""
    return [
        make_deal(deal_id=1, stage="Cerrado Ganado", forecast_evaluated_probability=80,
                  forecast_outcome=1, updated_at=datetime(2025, 1, 10, tzinfo=timezone.utc)),
        make_deal(deal_id=2, stage="Cerrado Perdido", forecast_evaluated_probability=30,
                  forecast_outcome=0, updated_at=datetime(2025, 1, 20, tzinfo=timezone.utc)),
        make_deal(deal_id=3, stage="Negociación", estimated_value=10_000.0, probability=50),
        make_deal(deal_id=4, stage="Prospección", estimated_value=2_000.0, probability=10),
        make_deal(deal_id=5, owner_id="u2", owner_name="beto", stage="Negociación",
                  estimated_value=20_000.0, probability=40),
        make_deal(deal_id=6, owner_id="u2", owner_name="beto", stage="Prospección",
                  estimated_value=None, probability=None),
    ]


@pytest.fixture
def sample_meetings() -> list[Meeting]:
    """Size 1: 3 held + 1 postponed; size 3: 1 cancelled + 1 held."""
    rows = [
        (1, MeetingStatus.HELD), (1, MeetingStatus.HELD), (1, MeetingStatus.HELD),
        (1, MeetingStatus.POSTPONED),
        (3, MeetingStatus.CANCELLED), (3, MeetingStatus.HELD),
    ]
    return [
        Meeting(meeting_id=i, company_size=size, status=status)
        for i, (size, status) in enumerate(rows, start=1)
    ]


# ── File helpers ──────────────────────────────────────────────────────────────

@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[str, list[dict]], Path]:
    """Write ``rows`` as a JSON array to ``tmp_path / name`` and return the path."""

    def _write(name: str, rows: list[dict]) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(rows, ensure_ascii=False), encoding="utf-8")
        return path

    return _write
