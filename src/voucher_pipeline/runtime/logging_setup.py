"""Logging configuration for command-line runs."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from voucher_pipeline.core.config.base import LogFormat
from voucher_pipeline.core.config.hooks import LoggingConfig

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Attributes LoggingHooks attaches through ``extra``.
CYCLE_FIELDS = ("cycle", "parameter", "step", "correlation_id", "error_kind")


class CycleJsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Cycle attributes (see :data:`CYCLE_FIELDS`) are copied onto the object
    when the record carries them, so one cycle's lines can be picked out
    by ``correlation_id``.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "time": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({name: getattr(record, name) for name in CYCLE_FIELDS if hasattr(record, name)})
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _build_handler(output: str) -> logging.Handler:
    if output == "stdout":
        return logging.StreamHandler(sys.stdout)
    if output == "stderr":
        return logging.StreamHandler(sys.stderr)
    return logging.FileHandler(output, encoding="utf-8")


def configure_logging(config: LoggingConfig, level_override: str | None = None) -> logging.Handler:
    """Install a single root handler according to *config*.

    Args:
        config: Logging configuration.
        level_override: If set, takes precedence over ``config.level``.

    Returns:
        The installed handler.
    """
    level_name = (level_override or config.level.value).upper()
    level = getattr(logging, level_name, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    handler = _build_handler(config.output)
    handler.setLevel(level)
    if config.format is LogFormat.JSON:
        handler.setFormatter(CycleJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root_logger.addHandler(handler)

    # Quiet down noisy third-party libraries
    logging.getLogger("openpyxl").setLevel(logging.WARNING)
    return handler
