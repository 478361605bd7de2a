"""
Logging setup for the CRM forecaster CLI.

``configure_logging(config)`` is called once per CLI command, after the
config is loaded.  Library modules only ever do::

    logger = logging.getLogger(__name__)

and leave handler setup to whoever embeds them (the CLI here, a web app
elsewhere).

Log lines go to stderr so report tables on stdout can be piped or redirected
without noise.  With ``json_format = true`` each line is a JSON object::

    {"ts": "2025-03-01T12:00:00Z", "level": "WARNING",
     "logger": "crm_forecaster.forecast.aggregator",
     "msg": "2 active deal(s) have no estimated value"}
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from crm_forecaster.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` keys are merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, object] = {
            "ts": created.strftime(TIMESTAMP_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (k, v) for k, v in record.__dict__.items()
            if k not in _RECORD_ATTRS and not k.startswith("_")
        )
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


def _formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonLineFormatter()
    text = logging.Formatter(TEXT_FORMAT, datefmt=TIMESTAMP_FORMAT)
    text.converter = time.gmtime
    return text


def configure_logging(config: "LoggingConfig") -> None:
    """Install stderr (and optional file) handlers on the root logger.

    Replaces any handlers already installed, so calling it twice in one
    process (e.g. from tests) does not duplicate output.
    """
    level = logging.getLevelName(config.level)
    formatter = _formatter(config.json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        path = Path(config.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)
