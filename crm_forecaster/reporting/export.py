"""
Write CLI results to disk as JSON or CSV.

Results are dataclasses (``ForecastSummary``, ``LogLossRow``, ...) or pydantic
models (``RaceResult``), often nested in lists.  ``to_jsonable`` flattens
both to plain dicts/lists so the two writers share one conversion path.
"""

from __future__ import annotations

import csv
import json
from collections.abc import Iterable, Sequence
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel


def to_jsonable(result: Any) -> Any:
    """Convert dataclasses and pydantic models (nested in lists/dicts) to plain data."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if is_dataclass(result) and not isinstance(result, type):
        return to_jsonable(asdict(result))
    if isinstance(result, (list, tuple)):
        return [to_jsonable(r) for r in result]
    if isinstance(result, dict):
        return {str(k): to_jsonable(v) for k, v in result.items()}
    return result


def export_to_json(data: Any, path: Path) -> Path:
    """Write ``data`` as indented UTF-8 JSON; parent directories are created."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(to_jsonable(data), indent=2, default=str, ensure_ascii=False),
        encoding="utf-8",
    )
    return path


def export_to_csv(
    rows: Iterable[Any],
    path: Path,
    fieldnames: Optional[Sequence[str]] = None,
) -> Path:
    """Write one CSV line per row.

    Args:
        rows:       Dicts, dataclasses or pydantic models; nested values are
                    written as their JSON text.
        path:       Destination; parent directories are created.
        fieldnames: Column order.  Defaults to every key seen, in first-seen
                    order.

    Returns:
        ``path``.  No rows and no ``fieldnames`` -> an empty file.
    """
    records = [to_jsonable(r) for r in rows]
    columns = list(fieldnames) if fieldnames else list(
        dict.fromkeys(key for rec in records for key in rec)
    )

    path.parent.mkdir(parents=True, exist_ok=True)
    if not columns:
        path.write_text("", encoding="utf-8")
        return path

    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        for rec in records:
            writer.writerow({
                k: json.dumps(v, ensure_ascii=False) if isinstance(v, (dict, list)) else v
                for k, v in rec.items()
            })
    return path
