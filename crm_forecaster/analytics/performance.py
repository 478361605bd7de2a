"""
Per-seller performance rows for the correlation views.

``build_seller_performance`` combines HR profiles with monthly race results:

  total_sales       Σ total_sales over every race the seller appears in.
  medals            gold / silver / bronze counts.
  growth            % change between the seller's last two races (by period);
                    0.0 with fewer than two races or a non-positive previous
                    amount.
  last_race_amount  total_sales of the seller's most recent race.
  tenure_months     whole months since start_date (0 if unknown).
  age               whole years since birth_date (None if unknown).

``build_correlation_samples`` then projects those rows, plus per-seller
forecast accuracy and meeting counts, onto ``CorrelationSample``.

``samples_from_records`` runs the whole chain from raw CRM exports:
employees, deals (monthly races, forecast accuracy, wins) and meetings.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Optional

from crm_forecaster.models.analytics import CorrelationSample, EmployeeProfile, Meeting
from crm_forecaster.models.deal import Deal
from crm_forecaster.models.race import RaceResult
from crm_forecaster.race.ranker import MIN_UNRANKED_RANK
from crm_forecaster.race.results import build_monthly_race_results
from crm_forecaster.scoring.reliability import ProbabilityLookup, compute_reliability
from crm_forecaster.taxonomy.deal_taxonomy import (
    DEFAULT_LOST_MARKERS,
    DEFAULT_WON_MARKERS,
    Medal,
    MeetingStatus,
    is_closed_stage,
    is_won_stage,
)
from crm_forecaster.utils.time_utils import age_years, tenure_months

UNKNOWN_NAME = "Desconocido"
UNKNOWN_GENDER = "N/A"


@dataclass(frozen=True)
class SellerPerformance:
    """One seller's aggregated race performance and HR attributes."""

    user_id: str
    name: str
    gender: str
    age: Optional[int]
    tenure_months: int
    total_sales: float
    gold: int
    silver: int
    bronze: int
    growth: float
    last_race_amount: float


def sales_growth(history: list[float]) -> float:
    """Percent change from the second-to-last to the last amount."""
    if len(history) < 2:
        return 0.0
    prev, last = history[-2], history[-1]
    if prev <= 0:
        return 0.0
    return (last - prev) / prev * 100


def build_seller_performance(
    employees: Iterable[EmployeeProfile],
    race_results: Iterable[RaceResult],
    today: date,
) -> list[SellerPerformance]:
    """Build one performance row per employee, in input order.

    Employees without any race results get zero sales and no medals.
    """
    history: dict[str, list[RaceResult]] = defaultdict(list)
    for row in race_results:
        history[row.user_id].append(row)

    rows: list[SellerPerformance] = []
    for emp in employees:
        races   = sorted(history.get(emp.user_id, []), key=lambda r: r.period)
        amounts = [r.total_sales for r in races]
        medals  = [r.medal for r in races]
        rows.append(
            SellerPerformance(
                user_id=emp.user_id,
                name=emp.full_name or UNKNOWN_NAME,
                gender=emp.gender or UNKNOWN_GENDER,
                age=age_years(emp.birth_date, today),
                tenure_months=tenure_months(emp.start_date, today),
                total_sales=sum(amounts),
                gold=medals.count(Medal.GOLD),
                silver=medals.count(Medal.SILVER),
                bronze=medals.count(Medal.BRONZE),
                growth=sales_growth(amounts),
                last_race_amount=amounts[-1] if amounts else 0.0,
            )
        )
    return rows


def meetings_per_close(meetings: int, wins: int) -> float:
    """Meetings needed per closed-won deal; 0.0 when nothing was won."""
    return meetings / wins if wins > 0 else 0.0


def build_correlation_samples(
    performance: Iterable[SellerPerformance],
    forecast_accuracy: Optional[Mapping[str, float]] = None,
    meetings: Optional[Mapping[str, int]] = None,
    wins: Optional[Mapping[str, int]] = None,
) -> list[CorrelationSample]:
    """Project performance rows onto CorrelationSample.

    Args:
        performance:       Rows from ``build_seller_performance``.
        forecast_accuracy: user_id -> accuracy percent.
        meetings:          user_id -> meetings held.
        wins:              user_id -> closed-won deal count.
    """
    forecast_accuracy = forecast_accuracy or {}
    meetings = meetings or {}
    wins = wins or {}
    return [
        CorrelationSample(
            name=p.name,
            tenure_months=p.tenure_months,
            total_sales=p.total_sales,
            forecast_accuracy=forecast_accuracy.get(p.user_id, 0.0),
            meetings_per_close=meetings_per_close(
                meetings.get(p.user_id, 0), wins.get(p.user_id, 0),
            ),
        )
        for p in performance
    ]


def forecast_accuracy_by_owner(
    deals: Iterable[Deal],
    probability_history_lookup: Optional[ProbabilityLookup] = None,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
) -> dict[str, float]:
    """owner_id -> (1 - mean squared error) * 100 over the owner's closed deals.

    Owners with no scorable closed deal are left out.
    """
    closed: dict[str, list[Deal]] = defaultdict(list)
    for deal in deals:
        if deal.owner_id and is_closed_stage(deal.stage, won_markers, lost_markers):
            closed[deal.owner_id].append(deal)

    accuracy: dict[str, float] = {}
    for owner_id, owned in closed.items():
        result = compute_reliability(owned, probability_history_lookup, won_markers=won_markers)
        if result.n_scored:
            accuracy[owner_id] = result.raw_accuracy * 100
    return accuracy


def samples_from_records(
    employees: Sequence[EmployeeProfile],
    deals: Sequence[Deal],
    meetings: Iterable[Meeting] = (),
    today: Optional[date] = None,
    probability_history_lookup: Optional[ProbabilityLookup] = None,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
    min_unranked_rank: int = MIN_UNRANKED_RANK,
) -> list[CorrelationSample]:
    """Derive one correlation sample per employee from raw CRM records.

    Monthly races come from closed-won deals; meetings count toward
    ``meetings_per_close`` only when held and tagged with a seller.
    """
    names = {e.user_id: e.full_name for e in employees if e.full_name}
    races = build_monthly_race_results(deals, names, won_markers, min_unranked_rank)
    performance = build_seller_performance(employees, races, today or date.today())

    wins: dict[str, int] = defaultdict(int)
    for deal in deals:
        if deal.owner_id and is_won_stage(deal.stage, won_markers):
            wins[deal.owner_id] += 1

    held: dict[str, int] = defaultdict(int)
    for meeting in meetings:
        if meeting.seller_id and meeting.status == MeetingStatus.HELD:
            held[meeting.seller_id] += 1

    accuracy = forecast_accuracy_by_owner(
        deals, probability_history_lookup, won_markers, lost_markers,
    )
    return build_correlation_samples(performance, accuracy, held, wins)
