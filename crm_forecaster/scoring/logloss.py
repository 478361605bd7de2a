"""
Log-loss reliability: seller calibration against an entropy baseline.

Used by the "seller reliability" admin view as a second lens next to the
Brier-based score in ``reliability.py``.

Baseline
--------
A forecaster that always predicts the global win rate ``r`` scores a log loss
equal to the binary entropy of ``r``::

  L_base = -(r ln r + (1 - r) ln(1 - r))

``r`` is the share of won deals among deals with a recorded outcome (0.3 when
none are recorded), clamped to [0.01, 0.99] so the baseline never collapses
to zero.

Score::

  score = max(0, 1 - avg_logloss / L_base) * 100

A seller no better than the baseline scores 0; a perfectly calibrated seller
approaches 100.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from crm_forecaster.models.deal import Deal
from crm_forecaster.utils.time_utils import as_utc

logger = logging.getLogger(__name__)

DEFAULT_WIN_RATE = 0.3
WIN_RATE_FLOOR   = 0.01
WIN_RATE_CEILING = 0.99
LOGLOSS_EPSILON  = 1e-6


@dataclass(frozen=True)
class LogLossRow:
    """Per-seller log-loss reliability row.

    Attributes:
        name:            Seller key.
        n_deals:         Evaluated deals counted.
        avg_logloss:     Mean log loss over those deals.
        win_rate:        Won share in percent.
        avg_probability: Mean evaluated probability (percent).
        score:           Reliability vs. baseline, 0–100.
    """

    name: str
    n_deals: int
    avg_logloss: float
    win_rate: float
    avg_probability: float
    score: float


def binary_entropy(rate: float) -> float:
    """Entropy (nats) of a Bernoulli(rate) outcome."""
    return -(rate * math.log(rate) + (1 - rate) * math.log(1 - rate))


def global_win_rate(
    deals: Iterable[Deal],
    default: float = DEFAULT_WIN_RATE,
    floor: float = WIN_RATE_FLOOR,
    ceiling: float = WIN_RATE_CEILING,
) -> float:
    """Clamped win rate over deals with a recorded outcome."""
    outcomes = [d.forecast_outcome for d in deals if d.forecast_outcome is not None]
    rate = sum(outcomes) / len(outcomes) if outcomes else default
    return max(floor, min(ceiling, rate))


def deal_log_loss(probability: float, outcome: int, eps: float = LOGLOSS_EPSILON) -> float:
    """Log loss of one prediction; ``probability`` in [0, 1] is clipped by ``eps``."""
    p = max(eps, min(1 - eps, probability))
    return -(outcome * math.log(p) + (1 - outcome) * math.log(1 - p))


def _resolve_logloss(deal: Deal) -> Optional[float]:
    if deal.forecast_logloss is not None:
        return deal.forecast_logloss
    if deal.forecast_evaluated_probability is None or deal.forecast_outcome is None:
        return None
    return deal_log_loss(deal.forecast_evaluated_probability / 100, deal.forecast_outcome)


def filter_evaluated_deals(
    deals: Iterable[Deal],
    days: Optional[int] = None,
    seller: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[Deal]:
    """Keep deals scored within the last ``days`` and/or owned by ``seller``.

    ``days=None`` keeps the full history; deals without ``forecast_scored_at``
    are dropped whenever a day window is set.
    """
    result = list(deals)
    if days is not None:
        cutoff = as_utc(now or datetime.now(tz=timezone.utc)) - timedelta(days=days)
        result = [
            d for d in result
            if d.forecast_scored_at is not None and as_utc(d.forecast_scored_at) >= cutoff
        ]
    if seller is not None:
        result = [d for d in result if d.owner_name == seller]
    return result


def compute_logloss_reliability(
    all_deals: Sequence[Deal],
    selected_deals: Optional[Sequence[Deal]] = None,
    default_win_rate: float = DEFAULT_WIN_RATE,
    floor: float = WIN_RATE_FLOOR,
    ceiling: float = WIN_RATE_CEILING,
) -> list[LogLossRow]:
    """Score each seller's evaluated deals against the global baseline.

    Args:
        all_deals:      Full population; sets the baseline win rate.
        selected_deals: Subset to score (e.g. after ``filter_evaluated_deals``).
                        Defaults to ``all_deals``.

    Returns:
        One LogLossRow per seller, sorted by score descending.
    """
    rate   = global_win_rate(all_deals, default_win_rate, floor, ceiling)
    l_base = binary_entropy(rate)
    logger.debug("Log-loss baseline: win_rate=%.3f L_base=%.4f", rate, l_base)

    grouped: dict[str, list[tuple[Deal, float]]] = defaultdict(list)
    for deal in (all_deals if selected_deals is None else selected_deals):
        loss = _resolve_logloss(deal)
        if loss is None or not math.isfinite(loss):
            continue
        grouped[deal.seller_key].append((deal, loss))

    rows: list[LogLossRow] = []
    for seller, items in grouped.items():
        n = len(items)
        avg_loss = sum(loss for _, loss in items) / n
        wins     = sum(1 for d, _ in items if d.forecast_outcome == 1)
        avg_prob = sum(d.forecast_evaluated_probability or 0 for d, _ in items) / n
        rows.append(
            LogLossRow(
                name=seller,
                n_deals=n,
                avg_logloss=avg_loss,
                win_rate=wins / n * 100,
                avg_probability=avg_prob,
                score=max(0.0, 1 - avg_loss / l_base) * 100,
            )
        )

    return sorted(rows, key=lambda r: -r.score)
