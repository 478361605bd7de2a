"""
File loaders for CRM record exports (JSON or CSV) into validated models.

Format is chosen by file suffix:
  ``.json``         — a top-level array of objects.
  ``.csv`` / ``.tsv`` — header row; empty cells are dropped so pydantic
                       applies the field default.

All rows are validated before any are returned.  If **any** row fails, a
single :class:`ValueError` lists the first 10 failures.  This is the only
place record shapes are checked; the computation modules assume valid models.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from crm_forecaster.models.analytics import CorrelationSample, EmployeeProfile, Meeting
from crm_forecaster.models.deal import Deal, ProbabilityChange
from crm_forecaster.models.race import RaceEntry

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

MAX_ERRORS_SHOWN = 10


def load_records(path: Path, model: type[M]) -> list[M]:
    """Load and validate every record in ``path`` as ``model``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On unsupported suffix, malformed file, or invalid rows.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Record file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".json":
        rows = _read_json_rows(path)
        first_line = 1
    elif suffix in (".csv", ".tsv"):
        rows = _read_csv_rows(path, delimiter="\t" if suffix == ".tsv" else ",")
        first_line = 2  # 1-based, skip header row
    else:
        raise ValueError(f"Unsupported record file type '{suffix}': {path}")

    if not rows:
        logger.warning("Record file is empty: %s", path)
        return []

    records: list[M] = []
    errors: list[tuple[int, str]] = []
    for i, row in enumerate(rows):
        try:
            records.append(model.model_validate(row))
        except ValidationError as exc:
            errors.append((i + first_line, str(exc)))

    if errors:
        detail = "\n".join(f"  Row {ln}: {msg}" for ln, msg in errors[:MAX_ERRORS_SHOWN])
        suffix_msg = (
            f"\n  … and {len(errors) - MAX_ERRORS_SHOWN} more"
            if len(errors) > MAX_ERRORS_SHOWN else ""
        )
        raise ValueError(
            f"{len(errors)} row(s) failed validation in {path.name}:\n{detail}{suffix_msg}"
        )

    logger.info("Loaded %d %s record(s) from %s", len(records), model.__name__, path.name)
    return records


def _read_json_rows(path: Path) -> list[dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"JSON parse error in {path.name}: {exc}") from exc
    if not isinstance(data, list):
        raise ValueError(f"JSON record file must contain an array: {path.name}")
    if not all(isinstance(row, dict) for row in data):
        raise ValueError(f"JSON record file must contain an array of objects: {path.name}")
    return data


def _read_csv_rows(path: Path, delimiter: str) -> list[dict[str, Any]]:
    with open(path, encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        if reader.fieldnames is None:
            return []
        return [
            {k: v for k, v in row.items() if k is not None and v is not None and v.strip() != ""}
            for row in reader
        ]


def load_deals(path: Path) -> list[Deal]:
    return load_records(path, Deal)


def load_probability_changes(path: Path) -> list[ProbabilityChange]:
    return load_records(path, ProbabilityChange)


def load_meetings(path: Path) -> list[Meeting]:
    return load_records(path, Meeting)


def load_correlation_samples(path: Path) -> list[CorrelationSample]:
    return load_records(path, CorrelationSample)


def load_race_entries(path: Path) -> list[RaceEntry]:
    return load_records(path, RaceEntry)


def load_employees(path: Path) -> list[EmployeeProfile]:
    return load_records(path, EmployeeProfile)
