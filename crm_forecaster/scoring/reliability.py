"""
Seller reliability score: shrinkage-adjusted calibration accuracy.

Algorithm
---------
For each closed deal of one seller we resolve a (p, y) pair:

  p  predicted win probability in [0, 1]
  y  realized outcome, 1 = won, 0 = lost

Resolution order (``resolve_scored_deal``):

  1. Frozen evaluation — ``forecast_evaluated_probability`` / 100.
  2. Probability history — the most recent recorded probability change,
     supplied by the caller as a lookup (callable or mapping).
  3. Neither — the deal is EXCLUDED (returns ``None``).  Malformed history
     strings are also excluded; coercing them to 0 would drag the average.

``y`` is the explicit ``forecast_outcome`` when recorded, otherwise the
won/lost stage label.

Score::

  A = 1 - mean((y - p)^2)              raw accuracy (1 - Brier score)
  S = A * n / (n + k) * 100            k = shrinkage constant (default 4)

The ``n / (n + k)`` factor discounts thin track records: n=1 keeps 20% of the
raw accuracy, n=4 keeps 50%, n=36 keeps 90%.  Every squared error lies in
[0, 1], so ``S`` stays within [0, 100); a seller who was always fully wrong
scores 0.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional, Union

from crm_forecaster.models.deal import PROBABILITY_FIELD, Deal, ProbabilityChange
from crm_forecaster.taxonomy.deal_taxonomy import (
    DEFAULT_LOST_MARKERS,
    DEFAULT_WON_MARKERS,
    is_closed_stage,
    is_won_stage,
)
from crm_forecaster.utils.time_utils import as_utc

logger = logging.getLogger(__name__)

DEFAULT_SHRINKAGE = 4.0

RawProbability = Union[str, int, float, None]
ProbabilityLookup = Union[Callable[[int], RawProbability], Mapping[int, RawProbability]]

SOURCE_EVALUATED = "evaluated"
SOURCE_HISTORY = "history"


@dataclass(frozen=True)
class ScoredDeal:
    """A resolved (prediction, outcome) pair for one closed deal.

    Attributes:
        deal_id:     Deal PK.
        probability: Predicted win probability in [0, 1].
        outcome:     1 if won, 0 if lost.
        source:      ``"evaluated"`` or ``"history"``.
    """

    deal_id: int
    probability: float
    outcome: int
    source: str

    @property
    def squared_error(self) -> float:
        return (self.outcome - self.probability) ** 2


@dataclass(frozen=True)
class ReliabilityScore:
    """Breakdown of one seller's reliability computation.

    Attributes:
        n_deals:           Historical deals considered.
        n_scored:          Deals with a resolvable prediction (``n``).
        n_excluded:        Deals dropped by the resolution strategy.
        sum_squared_error: Σ (y - p)^2 over scored deals.
        raw_accuracy:      1 - mean squared error; 0.0 when n_scored == 0.
        confidence_weight: n / (n + k); 0.0 when n_scored == 0.
        score:             raw_accuracy * confidence_weight * 100.
    """

    n_deals: int
    n_scored: int
    n_excluded: int
    sum_squared_error: float
    raw_accuracy: float
    confidence_weight: float
    score: float


def parse_probability(raw: RawProbability) -> Optional[float]:
    """Parse a stored percent value (e.g. ``"65"``) into a finite float.

    Returns ``None`` for missing, empty, non-numeric or non-finite input.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = raw.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not math.isfinite(value):
        return None
    return value


def latest_probability_lookup(changes: Iterable[ProbabilityChange]) -> dict[int, Optional[str]]:
    """Build a deal_id -> most recent probability value table.

    Only ``field_name == "probabilidad"`` records are considered.  When two
    records share a timestamp the one seen first wins.  Naive timestamps are
    read as UTC.
    """
    latest: dict[int, ProbabilityChange] = {}
    for change in changes:
        if change.field_name != PROBABILITY_FIELD:
            continue
        current = latest.get(change.deal_id)
        if current is None or as_utc(change.created_at) > as_utc(current.created_at):
            latest[change.deal_id] = change
    return {deal_id: ch.new_value for deal_id, ch in latest.items()}


def _lookup(lookup: Optional[ProbabilityLookup], deal_id: int) -> RawProbability:
    if lookup is None:
        return None
    if isinstance(lookup, Mapping):
        return lookup.get(deal_id)
    return lookup(deal_id)


def resolve_scored_deal(
    deal: Deal,
    lookup: Optional[ProbabilityLookup] = None,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
) -> Optional[ScoredDeal]:
    """Resolve the (p, y) pair for one closed deal, or ``None`` to exclude it."""
    if deal.forecast_outcome is not None:
        outcome = deal.forecast_outcome
    else:
        outcome = 1 if is_won_stage(deal.stage, won_markers) else 0

    if deal.forecast_evaluated_probability is not None:
        return ScoredDeal(
            deal_id=deal.deal_id,
            probability=deal.forecast_evaluated_probability / 100,
            outcome=outcome,
            source=SOURCE_EVALUATED,
        )

    pct = parse_probability(_lookup(lookup, deal.deal_id))
    if pct is None:
        return None
    return ScoredDeal(
        deal_id=deal.deal_id,
        probability=pct / 100,
        outcome=outcome,
        source=SOURCE_HISTORY,
    )


def compute_reliability(
    historical_deals: Iterable[Deal],
    probability_history_lookup: Optional[ProbabilityLookup] = None,
    shrinkage: float = DEFAULT_SHRINKAGE,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
) -> ReliabilityScore:
    """Compute the full reliability breakdown for one seller's closed deals.

    Args:
        historical_deals:           The seller's closed deals.
        probability_history_lookup: deal_id -> most recent raw probability,
                                    used only when no frozen evaluation exists.
        shrinkage:                  The ``k`` in ``n / (n + k)``.
        won_markers:                Stage markers meaning "closed won".

    Returns:
        ReliabilityScore; all-zero when nothing could be scored.
    """
    n_deals = 0
    scored: list[ScoredDeal] = []
    for deal in historical_deals:
        n_deals += 1
        resolved = resolve_scored_deal(deal, probability_history_lookup, won_markers)
        if resolved is None:
            logger.debug("Deal %s excluded from reliability: no usable probability", deal.deal_id)
            continue
        scored.append(resolved)

    n = len(scored)
    if n == 0:
        return ReliabilityScore(
            n_deals=n_deals, n_scored=0, n_excluded=n_deals,
            sum_squared_error=0.0, raw_accuracy=0.0,
            confidence_weight=0.0, score=0.0,
        )

    sse    = sum(s.squared_error for s in scored)
    acc    = 1 - sse / n
    weight = n / (n + shrinkage)

    return ReliabilityScore(
        n_deals=n_deals,
        n_scored=n,
        n_excluded=n_deals - n,
        sum_squared_error=sse,
        raw_accuracy=acc,
        confidence_weight=weight,
        score=acc * weight * 100,
    )


def score_seller_reliability(
    historical_deals: Iterable[Deal],
    probability_history_lookup: Optional[ProbabilityLookup] = None,
    shrinkage: float = DEFAULT_SHRINKAGE,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
) -> float:
    """Return the reliability score (nominally 0–100) for one seller."""
    return compute_reliability(
        historical_deals, probability_history_lookup, shrinkage, won_markers,
    ).score


def score_all_sellers(
    deals: Iterable[Deal],
    probability_history_lookup: Optional[ProbabilityLookup] = None,
    shrinkage: float = DEFAULT_SHRINKAGE,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
) -> dict[str, float]:
    """Score every seller that owns at least one deal.

    Sellers with only open deals get 0.0.  Keys are ``Deal.seller_key`` in
    first-appearance order.
    """
    closed_by_seller: dict[str, list[Deal]] = defaultdict(list)
    for deal in deals:
        bucket = closed_by_seller[deal.seller_key]
        if is_closed_stage(deal.stage, won_markers, lost_markers):
            bucket.append(deal)

    scores: dict[str, float] = {}
    for seller, closed in closed_by_seller.items():
        result = compute_reliability(closed, probability_history_lookup, shrinkage, won_markers)
        logger.debug(
            "Reliability %s: n=%d excluded=%d score=%.2f",
            seller, result.n_scored, result.n_excluded, result.score,
        )
        scores[seller] = result.score
    return scores
