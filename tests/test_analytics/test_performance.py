"""
Tests for crm_forecaster/analytics/performance.py.

What we test
------------
sales_growth():
  - Percent change between the last two amounts; 0.0 when undefined.

build_seller_performance():
  - Totals, medals and last race amount from race history (sorted by period).
  - Tenure and age from HR dates; unknown name / gender placeholders.
  - Employees without races get zeros.

build_correlation_samples():
  - Projects rows with accuracy and meetings-per-close lookups.

samples_from_records():
  - Employees + deals + meetings -> one sample each; races, accuracy, wins
    and held meetings all derived from the raw records.
"""

from __future__ import annotations

from datetime import date

import pytest

from crm_forecaster.analytics.performance import (
    UNKNOWN_GENDER,
    UNKNOWN_NAME,
    build_correlation_samples,
    build_seller_performance,
    forecast_accuracy_by_owner,
    meetings_per_close,
    sales_growth,
    samples_from_records,
)
from crm_forecaster.models.analytics import EmployeeProfile, Meeting
from crm_forecaster.models.race import RaceResult
from crm_forecaster.taxonomy.deal_taxonomy import Medal

_TODAY = date(2025, 6, 15)


def _race(user: str, month: int, total: float, rank: int, medal: Medal | None) -> RaceResult:
    return RaceResult(period=date(2025, month, 1), title="t", user_id=user,
                      total_sales=total, rank=rank, medal=medal)


class TestSalesGrowth:
    @pytest.mark.parametrize(
        "history, expected",
        [([], 0.0), ([100.0], 0.0), ([100.0, 150.0], 50.0), ([0.0, 10.0], 0.0),
         ([10.0, 200.0, 100.0], -50.0)],
    )
    def test_growth(self, history, expected: float) -> None:
        assert sales_growth(history) == pytest.approx(expected)


class TestBuildSellerPerformance:
    def test_combines_hr_and_races(self) -> None:
        employees = [
            EmployeeProfile(user_id="u1", full_name="Ana Pérez", gender="F",
                            birth_date=date(1990, 6, 16), start_date=date(2024, 1, 20)),
        ]
        races = [
            _race("u1", 3, 300.0, 1, Medal.GOLD),
            _race("u1", 1, 100.0, 2, Medal.SILVER),
            _race("u1", 2, 200.0, 1, Medal.GOLD),
        ]
        (row,) = build_seller_performance(employees, races, _TODAY)
        assert row.name == "Ana Pérez"
        assert row.total_sales == pytest.approx(600.0)
        assert (row.gold, row.silver, row.bronze) == (2, 1, 0)
        assert row.last_race_amount == pytest.approx(300.0)
        assert row.growth == pytest.approx(50.0)
        assert row.tenure_months == 17
        assert row.age == 34

    def test_unknown_fields_and_no_races(self) -> None:
        (row,) = build_seller_performance([EmployeeProfile(user_id="u9")], [], _TODAY)
        assert row.name == UNKNOWN_NAME
        assert row.gender == UNKNOWN_GENDER
        assert row.age is None
        assert row.tenure_months == 0
        assert row.total_sales == 0
        assert row.last_race_amount == 0.0

    def test_blank_user_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            EmployeeProfile(user_id="   ")


class TestCorrelationSamples:
    def test_meetings_per_close(self) -> None:
        assert meetings_per_close(10, 4) == pytest.approx(2.5)
        assert meetings_per_close(10, 0) == 0.0

    def test_projection(self) -> None:
        rows = build_seller_performance(
            [EmployeeProfile(user_id="u1", full_name="Ana", start_date=date(2025, 1, 1))],
            [_race("u1", 1, 500.0, 1, Medal.GOLD)],
            _TODAY,
        )
        (sample,) = build_correlation_samples(
            rows, forecast_accuracy={"u1": 72.5}, meetings={"u1": 9}, wins={"u1": 3},
        )
        assert sample.name == "Ana"
        assert sample.tenure_months == 5
        assert sample.total_sales == pytest.approx(500.0)
        assert sample.forecast_accuracy == pytest.approx(72.5)
        assert sample.meetings_per_close == pytest.approx(3.0)


# ── From raw records ──────────────────────────────────────────────────────────

@pytest.fixture
def crm_records(make_deal):
    employees = [
        EmployeeProfile(user_id="u1", full_name="Ana", start_date=date(2024, 6, 1)),
        EmployeeProfile(user_id="u2", full_name="Beto", start_date=date(2025, 1, 1)),
        EmployeeProfile(user_id="u3", full_name="Caro"),
    ]
    deals = [
        make_deal(owner_id="u1", stage="Cerrado Ganado", estimated_value=5000,
                  forecast_evaluated_probability=80, forecast_outcome=1,
                  updated_at="2025-03-10T00:00:00Z"),
        make_deal(owner_id="u1", stage="Cerrado Perdido", estimated_value=100,
                  forecast_evaluated_probability=20, forecast_outcome=0,
                  updated_at="2025-03-11T00:00:00Z"),
        make_deal(owner_id="u2", owner_name="beto", stage="Cerrado Ganado",
                  estimated_value=2000, updated_at="2025-04-02T00:00:00Z"),
        make_deal(owner_id="u2", owner_name="beto", stage="Negociación", estimated_value=900),
    ]
    meetings = [
        Meeting(meeting_id=1, company_size=2, status="held", seller_id="u1"),
        Meeting(meeting_id=2, company_size=2, status="held", seller_id="u1"),
        Meeting(meeting_id=3, company_size=3, status="cancelled", seller_id="u1"),
        Meeting(meeting_id=4, company_size=1, status="held", seller_id="u2"),
        Meeting(meeting_id=5, company_size=1, status="held"),
    ]
    return employees, deals, meetings


class TestSamplesFromRecords:
    def test_accuracy_by_owner(self, crm_records) -> None:
        _, deals, _ = crm_records
        # u2's only closed deal has no probability to score.
        assert forecast_accuracy_by_owner(deals) == {"u1": pytest.approx(96.0)}

    def test_one_sample_per_employee(self, crm_records) -> None:
        employees, deals, meetings = crm_records
        ana, beto, caro = samples_from_records(employees, deals, meetings, today=_TODAY)

        assert ana.name == "Ana"
        assert ana.tenure_months == 12
        assert ana.total_sales == pytest.approx(5000.0)
        assert ana.forecast_accuracy == pytest.approx(96.0)
        assert ana.meetings_per_close == pytest.approx(2.0)

        assert beto.tenure_months == 5
        assert beto.total_sales == pytest.approx(2000.0)
        assert beto.forecast_accuracy == 0.0
        assert beto.meetings_per_close == pytest.approx(1.0)

        assert caro.total_sales == 0
        assert caro.meetings_per_close == 0.0

    def test_no_meetings(self, crm_records) -> None:
        employees, deals, _ = crm_records
        samples = samples_from_records(employees, deals, today=_TODAY)
        assert all(s.meetings_per_close == 0.0 for s in samples)
