"""
Leaderboard ("seller race") models.

``RaceEntry`` is a generic name/value row to be ranked. ``RaceResult`` is one
seller's finished monthly race standing, as produced by
``crm_forecaster.race.results.build_monthly_race_results``.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from crm_forecaster.taxonomy.deal_taxonomy import Medal


class RaceEntry(BaseModel):
    """A participant and its numeric value for one period."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: float = 0.0


class RaceResult(BaseModel):
    """A seller's final standing in one monthly race.

    Attributes:
        period: First day of the race month (UTC).
        title: Display title, e.g. ``"Carrera de Enero 2025"``.
        user_id: Seller user id.
        total_sales: Sum of closed-won value in the period.
        rank: Competition rank (1-based).
        medal: Medal for ranks 1–3, else ``None``.
        name: Seller display name, if known.
    """

    model_config = ConfigDict(frozen=True)

    period: date
    title: str
    user_id: str
    total_sales: float
    rank: int
    medal: Optional[Medal] = None
    name: Optional[str] = None

    @model_validator(mode="after")
    def validate_rank_and_medal(self) -> "RaceResult":
        if self.rank < 1:
            raise ValueError(f"rank must be >= 1, got {self.rank}.")
        if self.medal is not None and self.total_sales <= 0:
            raise ValueError("medal requires positive total_sales.")
        return self
