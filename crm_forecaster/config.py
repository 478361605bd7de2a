"""
Typed configuration for the CRM forecaster.

Sources, lowest precedence first:

  config/default.toml   stage labels, scoring constants, logging (committed)
  config/local.toml     per-machine overrides next to the loaded file
  .env                  loaded into the process environment, never overrides it
  CRM_FORECASTER_*      LOG_LEVEL, LOG_FILE, SHRINKAGE, DEBUG

Use ``load_config()``; it returns a frozen ``AppConfig``.

The computation modules take plain keyword arguments with the same defaults
as these models, so ``AppConfig()`` is only needed at the CLI edge.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

from crm_forecaster.taxonomy.deal_taxonomy import (
    DEFAULT_LOST_MARKERS,
    DEFAULT_PIPELINE_STAGES,
    DEFAULT_WON_MARKERS,
    DealStage,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ── Sub-config models ─────────────────────────────────────────────────────────


class StageConfig(BaseModel):
    """Pipeline stage labels and won/lost classification markers."""

    model_config = ConfigDict(frozen=True)

    pipeline: list[str] = list(DEFAULT_PIPELINE_STAGES)
    negotiation: str = DealStage.NEGOTIATION.value
    won_markers: list[str] = list(DEFAULT_WON_MARKERS)
    lost_markers: list[str] = list(DEFAULT_LOST_MARKERS)

    @field_validator("pipeline", "won_markers", "lost_markers")
    @classmethod
    def validate_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("stage lists must not be empty.")
        return v


class ReliabilityConfig(BaseModel):
    """Reliability scoring parameters."""

    model_config = ConfigDict(frozen=True)

    shrinkage: float = 4.0
    default_win_rate: float = 0.3
    win_rate_floor: float = 0.01
    win_rate_ceiling: float = 0.99

    @field_validator("shrinkage")
    @classmethod
    def validate_shrinkage(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"shrinkage must be > 0, got {v}.")
        return v

    @field_validator("default_win_rate", "win_rate_floor", "win_rate_ceiling")
    @classmethod
    def validate_rate(cls, v: float) -> float:
        if not 0.0 < v < 1.0:
            raise ValueError(f"win rates must be in (0.0, 1.0), got {v}.")
        return v


class ForecastConfig(BaseModel):
    """Team goal settings for the forecast dashboard."""

    model_config = ConfigDict(frozen=True)

    goal_multiplier: float = 1.5
    default_team_goal: float = 1_000_000.0

    @field_validator("goal_multiplier", "default_team_goal")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"goal settings must be > 0, got {v}.")
        return v


class RaceConfig(BaseModel):
    """Leaderboard settings."""

    model_config = ConfigDict(frozen=True)

    min_unranked_rank: int = 4


class AnalyticsConfig(BaseModel):
    """Analytics bucket settings."""

    model_config = ConfigDict(frozen=True)

    company_sizes: list[int] = [1, 2, 3, 4, 5]


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def normalise_level(cls, v: str) -> str:
        name = v.strip().upper()
        if name not in _LOG_LEVELS:
            raise ValueError(f"level must be one of {', '.join(_LOG_LEVELS)}, got '{v}'.")
        return name


class AppConfig(BaseModel):
    """Complete application configuration."""

    model_config = ConfigDict(frozen=True)

    stages: StageConfig = StageConfig()
    reliability: ReliabilityConfig = ReliabilityConfig()
    forecast: ForecastConfig = ForecastConfig()
    race: RaceConfig = RaceConfig()
    analytics: AnalyticsConfig = AnalyticsConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config" / "default.toml"

# env var -> (section, key); section None means a top-level key.
_ENV_OVERRIDES: dict[str, tuple[Optional[str], str]] = {
    "CRM_FORECASTER_LOG_LEVEL": ("logging", "level"),
    "CRM_FORECASTER_LOG_FILE":  ("logging", "log_file"),
    "CRM_FORECASTER_SHRINKAGE": ("reliability", "shrinkage"),
    "CRM_FORECASTER_DEBUG":     (None, "debug"),
}

_TRUTHY = {"1", "true", "yes", "on"}


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: TOML file to load.  When omitted,
            ``config/default.toml`` is used if present, else the built-in
            model defaults.

    Returns:
        Validated, frozen ``AppConfig``.

    Raises:
        FileNotFoundError: If an explicit ``config_path`` does not exist.
        pydantic.ValidationError: If a merged value fails validation.
    """
    load_dotenv(PROJECT_ROOT / ".env", override=False)

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    elif DEFAULT_CONFIG_PATH.is_file():
        config_path = DEFAULT_CONFIG_PATH

    raw: dict[str, Any] = {}
    if config_path is not None:
        raw = _read_toml(config_path)
        local = config_path.with_name("local.toml")
        if local.is_file():
            raw = _merge_tables(raw, _read_toml(local))

    _apply_env_overrides(raw, os.environ)

    # [project] only carries the debug flag; a top-level key wins.
    project = raw.pop("project", {})
    raw.setdefault("debug", project.get("debug", False))
    return AppConfig.model_validate(raw)


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        return tomllib.load(f)


def _merge_tables(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` merged in, table by table."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge_tables(current, value)
        else:
            merged[key] = value
    return merged


def _apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> None:
    """Write ``CRM_FORECASTER_*`` values from ``environ`` into ``raw`` in place."""
    for var, (section, key) in _ENV_OVERRIDES.items():
        value: Any = environ.get(var)
        if not value:
            continue
        if key == "debug":
            value = value.strip().lower() in _TRUTHY
        target = raw if section is None else raw.setdefault(section, {})
        target[key] = value
