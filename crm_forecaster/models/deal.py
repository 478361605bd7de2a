"""
Deal and probability-history models.

``Deal`` is one sales opportunity as read from the CRM ``clientes`` table.
Numeric fields are optional because the CRM lets sellers leave them blank;
the computation layer treats a missing value as zero (aggregation) or as
"excluded from the sample" (reliability scoring).

``ProbabilityChange`` is one row of the deal audit trail. ``new_value`` is
kept as the raw string the CRM stored — parsing (and dropping malformed
values) is the reliability scorer's job, not the boundary's.

Both models are frozen: the engine never mutates its inputs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROBABILITY_FIELD = "probabilidad"


class Deal(BaseModel):
    """A seller-owned sales opportunity.

    Attributes:
        deal_id: CRM primary key.
        owner_id: Seller user id, or ``None`` for unassigned leads.
        owner_name: Seller username used for grouping on dashboards.
        stage: Free-text stage label, e.g. ``"Negociación"``.
        estimated_value: Deal value in currency units; ``None`` when unknown.
        probability: Current forecast probability, integer percent 0–100.
        forecast_evaluated_probability: Probability frozen when the deal was
            scored (percent, 0–100), or ``None`` if never evaluated.
        forecast_outcome: Recorded outcome at evaluation time (1 won, 0 lost).
        forecast_logloss: Log loss stored at evaluation time.
        forecast_scored_at: When the evaluation was recorded.
        updated_at: Last modification time; used as the close-date proxy.
    """

    model_config = ConfigDict(frozen=True)

    deal_id: int
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    stage: str = ""
    estimated_value: Optional[float] = Field(default=None, allow_inf_nan=False)
    probability: Optional[int] = None
    forecast_evaluated_probability: Optional[float] = Field(default=None, allow_inf_nan=False)
    forecast_outcome: Optional[int] = None
    forecast_logloss: Optional[float] = Field(default=None, allow_inf_nan=False)
    forecast_scored_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("estimated_value")
    @classmethod
    def validate_value_non_negative(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError(f"estimated_value must be non-negative, got {v}.")
        return v

    @field_validator("probability", "forecast_evaluated_probability")
    @classmethod
    def validate_probability_pct(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not 0 <= v <= 100:
            raise ValueError(f"probability must be in [0, 100], got {v}.")
        return v

    @field_validator("forecast_outcome")
    @classmethod
    def validate_outcome(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v not in (0, 1):
            raise ValueError(f"forecast_outcome must be 0 or 1, got {v}.")
        return v

    @property
    def seller_key(self) -> str:
        """Grouping key for per-seller aggregation."""
        return self.owner_name or "Unknown"


class ProbabilityChange(BaseModel):
    """One audit-trail record of a deal field change.

    Attributes:
        deal_id: FK to ``Deal.deal_id``.
        field_name: Changed column; only ``"probabilidad"`` rows feed scoring.
        old_value: Previous raw value.
        new_value: New raw value (may be malformed).
        created_at: When the change was recorded.
    """

    model_config = ConfigDict(frozen=True)

    deal_id: int
    field_name: str = PROBABILITY_FIELD
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime

    @field_validator("old_value", "new_value", mode="before")
    @classmethod
    def coerce_raw_value(cls, v: object) -> object:
        # JSON exports may carry numbers; keep everything as the raw string.
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v
