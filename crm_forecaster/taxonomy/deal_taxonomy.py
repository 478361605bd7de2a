"""
Deal, race and meeting taxonomy for the CRM forecaster.

Stage labels come from the CRM as free text (Spanish), so classification is
done by case-insensitive marker matching rather than exact enum lookup:

  - ``is_won_stage``    — label contains a won marker ("ganado" / "ganada").
  - ``is_lost_stage``   — label contains a lost marker ("perdido" / "perdida").
  - ``is_closed_stage`` — won or lost.

Both spellings are accepted because the CRM has written "Cerrado Ganado" and
"Cerrada Ganada" at different times.

This module has NO imports from any other ``crm_forecaster`` package.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum

DEFAULT_WON_MARKERS: tuple[str, ...] = ("ganado", "ganada")
DEFAULT_LOST_MARKERS: tuple[str, ...] = ("perdido", "perdida")


class DealStage(StrEnum):
    """Canonical pipeline stages, in funnel order."""

    PROSPECTION = "Prospección"
    NEGOTIATION = "Negociación"
    WON = "Cerrado Ganado"
    LOST = "Cerrado Perdido"


DEFAULT_PIPELINE_STAGES: tuple[str, ...] = tuple(s.value for s in DealStage)


class FunnelTone(StrEnum):
    """Display category attached to a funnel row."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    IN_PROGRESS = "in_progress"
    NEUTRAL = "neutral"


class Medal(StrEnum):
    """Leaderboard medal, tied to rank number 1–3."""

    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"


MEDAL_BY_RANK: dict[int, Medal] = {1: Medal.GOLD, 2: Medal.SILVER, 3: Medal.BRONZE}


class MeetingStatus(StrEnum):
    """Lifecycle of a scheduled client meeting."""

    SCHEDULED = "scheduled"
    HELD = "held"
    NOT_HELD = "not_held"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


POSTPONED_STATUSES: frozenset[MeetingStatus] = frozenset({
    MeetingStatus.NOT_HELD,
    MeetingStatus.POSTPONED,
    MeetingStatus.CANCELLED,
})


def _has_marker(stage: str | None, markers: Sequence[str]) -> bool:
    if not stage:
        return False
    label = stage.lower()
    return any(m.lower() in label for m in markers)


def is_won_stage(
    stage: str | None,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
) -> bool:
    """Return True if ``stage`` is a closed-won label."""
    return _has_marker(stage, won_markers)


def is_lost_stage(
    stage: str | None,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
) -> bool:
    """Return True if ``stage`` is a closed-lost label."""
    return _has_marker(stage, lost_markers)


def is_closed_stage(
    stage: str | None,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
) -> bool:
    """Return True if ``stage`` is won or lost. Unknown/empty labels are open."""
    return is_won_stage(stage, won_markers) or is_lost_stage(stage, lost_markers)


def funnel_tone(
    stage: str,
    negotiation_stage: str = DealStage.NEGOTIATION,
    won_markers: Sequence[str] = DEFAULT_WON_MARKERS,
    lost_markers: Sequence[str] = DEFAULT_LOST_MARKERS,
) -> FunnelTone:
    """Map a stage label to its funnel display category.

    Won wins over lost if a label somehow carries both markers.
    """
    if is_won_stage(stage, won_markers):
        return FunnelTone.POSITIVE
    if is_lost_stage(stage, lost_markers):
        return FunnelTone.NEGATIVE
    if stage == negotiation_stage:
        return FunnelTone.IN_PROGRESS
    return FunnelTone.NEUTRAL
