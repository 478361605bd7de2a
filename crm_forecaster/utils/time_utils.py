"""
Calendar helpers for race periods and seller tenure.

Key concepts:
  - Race periods: every monthly race is keyed by the first day of its UTC
    month, e.g. a deal closed 2025-03-17T22:00-06:00 belongs to 2025-03-01
    (it is already March 18 in UTC).
  - Tenure and age: whole calendar months / whole years as of a reference day.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

# Race titles are shown to Spanish-speaking sellers.
SPANISH_MONTHS: tuple[str, ...] = (
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
)


def month_period(moment: datetime | date) -> date:
    """Return the first day of the UTC month containing ``moment``.

    Naive datetimes are treated as UTC.  Plain dates are used as-is.
    """
    if isinstance(moment, datetime) and moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return date(moment.year, moment.month, 1)


def monthly_race_title(period: date) -> str:
    """Return the display title of a monthly race, e.g. ``"Carrera de Enero 2025"``."""
    return f"Carrera de {SPANISH_MONTHS[period.month - 1]} {period.year}"


def tenure_months(start: Optional[date], today: date) -> int:
    """Whole calendar months between ``start`` and ``today``.

    Counts month boundaries only (day of month is ignored).  Returns 0 when
    ``start`` is unknown.
    """
    if start is None:
        return 0
    return (today.year - start.year) * 12 + (today.month - start.month)


def age_years(birth: Optional[date], today: date) -> Optional[int]:
    """Age in whole years, birthday-aware; ``None`` when ``birth`` is unknown."""
    if birth is None:
        return None
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Return ``ts`` as an aware UTC datetime; naive values are taken as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)
