"""
Empirical postpone/cancel probability by client company size.

For each size bucket::

  probability = postponed / total * 100

where ``postponed`` counts meetings that ended not held, postponed or
cancelled, and ``total`` counts every meeting in the bucket.  Buckets with no
meetings report 0.0 with ``total == 0`` so callers can tell "no signal" apart
from a confirmed 0%.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from crm_forecaster.models.analytics import Meeting
from crm_forecaster.taxonomy.deal_taxonomy import POSTPONED_STATUSES, MeetingStatus

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_SIZES: tuple[int, ...] = (1, 2, 3, 4, 5)


@dataclass(frozen=True)
class PostponeBucket:
    """Meeting counts and postpone probability for one company size."""

    size: int
    total: int
    held: int
    postponed: int
    probability: float

    @property
    def has_signal(self) -> bool:
        return self.total > 0


def group_meetings_by_size(meetings: Iterable[Meeting]) -> dict[int, list[Meeting]]:
    """Group meetings by ``company_size``."""
    grouped: dict[int, list[Meeting]] = defaultdict(list)
    for meeting in meetings:
        grouped[meeting.company_size].append(meeting)
    return dict(grouped)


def bucket_postpone_probability(
    meetings_by_size: Mapping[int, Sequence[Meeting]],
    sizes: Sequence[int] = DEFAULT_COMPANY_SIZES,
) -> list[PostponeBucket]:
    """Compute one PostponeBucket per size in ``sizes``, in that order.

    Sizes present in ``meetings_by_size`` but not in ``sizes`` are ignored.
    """
    ignored = set(meetings_by_size) - set(sizes)
    if ignored:
        logger.debug("Ignoring meetings with company sizes %s", sorted(ignored))

    buckets: list[PostponeBucket] = []
    for size in sizes:
        meetings  = meetings_by_size.get(size, ())
        total     = len(meetings)
        held      = sum(1 for m in meetings if m.status == MeetingStatus.HELD)
        postponed = sum(1 for m in meetings if m.status in POSTPONED_STATUSES)
        buckets.append(
            PostponeBucket(
                size=size,
                total=total,
                held=held,
                postponed=postponed,
                probability=(postponed / total * 100) if total else 0.0,
            )
        )
    return buckets
