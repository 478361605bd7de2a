"""
Leaderboard ranking with competition ranks and medals.

Ranking rules
-------------
1. Items are sorted by value descending (stable: equal values keep input order).
2. Positive values (> 0) get standard competition ranks — "1, 1, 3" — where a
   tie shares the rank of its first occurrence and the next distinct value
   jumps to its 1-based position.
3. Medals follow the rank NUMBER: 1 gold, 2 silver, 3 bronze.  Two items tied
   for first both get gold and the next item is rank 3 (bronze); silver is
   skipped entirely.
4. Non-positive values (<= 0) are listed after every positive item, all at
   the shared rank ``max(4, n_positive + 1)``, with no medal and
   ``is_zero_value=True``.  NaN and infinite values join this group, sorted
   last.  Every item stays in the output, so zero-activity sellers still
   appear on the board.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from crm_forecaster.taxonomy.deal_taxonomy import MEDAL_BY_RANK, Medal

T = TypeVar("T")

MIN_UNRANKED_RANK = 4


def _is_positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


@dataclass(frozen=True)
class RankedRaceItem(Generic[T]):
    """An item decorated with its leaderboard position.

    Attributes:
        item:          The original item.
        value:         Value extracted by ``get_value``.
        rank:          Competition rank (1-based).
        medal:         Medal for ranks 1–3 among positive values, else None.
        is_zero_value: True for non-positive values (unranked but listed).
    """

    item: T
    value: float
    rank: int
    medal: Optional[Medal]
    is_zero_value: bool


def rank_race_items(
    items: Iterable[T],
    get_value: Callable[[T], float],
    min_unranked_rank: int = MIN_UNRANKED_RANK,
) -> list[RankedRaceItem[T]]:
    """Rank ``items`` by ``get_value`` using competition ranking.

    Args:
        items:             Participants, in any order.
        get_value:         Extracts the numeric score of an item.
        min_unranked_rank: Floor for the rank shared by non-positive items.

    Returns:
        Positive items in rank order, then non-positive items.
    """
    valued = [(item, get_value(item)) for item in items]

    positive = sorted(
        ((it, v) for it, v in valued if _is_positive(v)), key=lambda pair: -pair[1],
    )
    non_positive = sorted(
        ((it, v) for it, v in valued if not _is_positive(v)),
        key=lambda pair: -pair[1] if math.isfinite(pair[1]) else math.inf,
    )

    ranked: list[RankedRaceItem[T]] = []
    previous: Optional[float] = None
    rank = 1
    for index, (item, value) in enumerate(positive):
        if previous is not None and value != previous:
            rank = index + 1
        ranked.append(
            RankedRaceItem(
                item=item,
                value=value,
                rank=rank,
                medal=MEDAL_BY_RANK.get(rank),
                is_zero_value=False,
            )
        )
        previous = value

    zero_rank = max(min_unranked_rank, len(positive) + 1)
    ranked.extend(
        RankedRaceItem(item=item, value=value, rank=zero_rank, medal=None, is_zero_value=True)
        for item, value in non_positive
    )
    return ranked
