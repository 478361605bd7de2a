"""
Input models for the analytics layer.

``Meeting`` feeds the postpone-probability buckets; ``CorrelationSample`` is
one seller's row in the correlation scatter. ``EmployeeProfile`` carries the
HR fields (birth date, start date, gender) needed for performance rows.

``CorrelationSample`` deliberately accepts NaN/inf: the Pearson routine drops
non-finite pairs itself, so one bad metric does not reject the whole row.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from crm_forecaster.taxonomy.deal_taxonomy import MeetingStatus


class Meeting(BaseModel):
    """A client meeting tagged with the client company's size bucket.

    Attributes:
        meeting_id: CRM primary key.
        company_size: Size bucket of the client company (1 = smallest).
        status: Meeting outcome.
        seller_id: Seller who owned the meeting, if known.
    """

    model_config = ConfigDict(frozen=True)

    meeting_id: int
    company_size: int
    status: MeetingStatus
    seller_id: Optional[str] = None


class CorrelationSample(BaseModel):
    """Per-seller metrics for correlation analysis."""

    model_config = ConfigDict(frozen=True)

    name: str
    tenure_months: float = 0.0
    total_sales: float = 0.0
    forecast_accuracy: float = 0.0
    meetings_per_close: float = 0.0


class EmployeeProfile(BaseModel):
    """HR profile of a seller.

    Attributes:
        user_id: Seller user id (matches ``Deal.owner_id``).
        full_name: Display name; ``None`` renders as "Desconocido".
        gender: Free-text gender label, or ``None``.
        birth_date: Used for age.
        start_date: Used for tenure.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    full_name: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[date] = None
    start_date: Optional[date] = None

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user_id must not be empty.")
        return v.strip()
