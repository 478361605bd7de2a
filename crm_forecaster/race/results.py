"""
Monthly seller races built from closed-won deals.

Each calendar month (UTC) is one race: closed-won deal values are summed per
owner, using ``Deal.updated_at`` as the close-date proxy, and the totals are
ranked with ``rank_race_items``.  Deals without an owner or a timestamp are
skipped.

Helpers for the race history views:

  tally_medals()          -> medal counts per seller
  group_races_by_period() -> newest race first, rows in rank order
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from crm_forecaster.models.deal import Deal
from crm_forecaster.models.race import RaceResult
from crm_forecaster.race.ranker import MIN_UNRANKED_RANK, rank_race_items
from crm_forecaster.taxonomy.deal_taxonomy import DEFAULT_WON_MARKERS, Medal, is_won_stage
from crm_forecaster.utils.time_utils import month_period, monthly_race_title

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MedalTally:
    """Medal counts for one seller across all races."""

    user_id: str
    name: str
    gold: int = 0
    silver: int = 0
    bronze: int = 0

    @property
    def total(self) -> int:
        return self.gold + self.silver + self.bronze


def monthly_sales_by_owner(
    deals: Iterable[Deal],
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
) -> dict[date, dict[str, float]]:
    """Sum closed-won value per (month, owner_id)."""
    totals: dict[date, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    skipped = 0
    for deal in deals:
        if not is_won_stage(deal.stage, won_markers):
            continue
        if deal.owner_id is None or deal.updated_at is None:
            skipped += 1
            continue
        totals[month_period(deal.updated_at)][deal.owner_id] += deal.estimated_value or 0
    if skipped:
        logger.debug("Skipped %d won deal(s) without owner or timestamp", skipped)
    return {period: dict(owners) for period, owners in totals.items()}


def build_monthly_race_results(
    deals: Iterable[Deal],
    names: Optional[Mapping[str, str]] = None,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    min_unranked_rank: int = MIN_UNRANKED_RANK,
) -> list[RaceResult]:
    """Rank every seller in every month that has closed-won deals.

    Args:
        deals:       All deals; only won stages are used.
        names:       Optional owner_id -> display name.
        won_markers: Stage markers meaning "closed won".

    Returns:
        RaceResult rows ordered by period ascending, then rank.
    """
    names = names or {}
    results: list[RaceResult] = []
    for period, owners in sorted(monthly_sales_by_owner(deals, won_markers).items()):
        title = monthly_race_title(period)
        ranked = rank_race_items(owners.items(), lambda kv: kv[1], min_unranked_rank)
        for r in ranked:
            user_id, total = r.item
            results.append(
                RaceResult(
                    period=period,
                    title=title,
                    user_id=user_id,
                    total_sales=total,
                    rank=r.rank,
                    medal=r.medal,
                    name=names.get(user_id),
                )
            )
    logger.info("Built %d race result row(s)", len(results))
    return results


def tally_medals(results: Iterable[RaceResult]) -> list[MedalTally]:
    """Count medals per seller; sellers without medals are omitted."""
    counts: dict[str, dict[str, int]] = {}
    labels: dict[str, str] = {}
    for row in results:
        if row.medal is None:
            continue
        if row.user_id not in counts:
            counts[row.user_id] = {m.value: 0 for m in Medal}
            labels[row.user_id] = row.name or "Desconocido"
        counts[row.user_id][row.medal.value] += 1

    return [
        MedalTally(
            user_id=uid,
            name=labels[uid],
            gold=c[Medal.GOLD],
            silver=c[Medal.SILVER],
            bronze=c[Medal.BRONZE],
        )
        for uid, c in counts.items()
    ]


def group_races_by_period(results: Iterable[RaceResult]) -> dict[date, list[RaceResult]]:
    """Group race rows by period, newest first, each race in rank order."""
    by_period: dict[date, list[RaceResult]] = defaultdict(list)
    for row in results:
        by_period[row.period].append(row)
    return {
        period: sorted(by_period[period], key=lambda r: r.rank)
        for period in sorted(by_period, reverse=True)
    }


def race_for_period(results: Iterable[RaceResult], when: datetime | date) -> list[RaceResult]:
    """Return the race rows of the month containing ``when``."""
    return group_races_by_period(results).get(month_period(when), [])
