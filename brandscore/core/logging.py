"""Logging setup for scoring runs.

Pipeline code attaches context through ``extra=`` (record_id, operation,
entity, domain, vendor). Both formatters render whichever of those fields a
record carries: JSON output as top-level keys, text output as a trailing
``[key=value ...]`` block.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

from brandscore.core.config import settings

CONTEXT_FIELDS = ("record_id", "operation", "entity", "domain", "vendor")

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s%(context)s"
TEXT_DATEFMT = "%H:%M:%S"

# Third-party loggers that are chatty at INFO (one line per HTTP request or SQL statement)
QUIET_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def log_context(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(log_context(record))
        if record.exc_info and record.exc_info[1]:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ContextFormatter(logging.Formatter):
    """Human-readable lines with the record context appended."""

    def __init__(self):
        super().__init__(TEXT_FORMAT, datefmt=TEXT_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        context = log_context(record)
        record.context = " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]" if context else ""
        return super().format(record)


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
    stream: TextIO | None = None,
) -> logging.Handler:
    """Install a single root handler; arguments default to LOG_LEVEL / LOG_JSON."""
    level_name = (level or settings.log_level).upper()
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    use_json = settings.log_json if json_output is None else json_output

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter() if use_json else ContextFormatter())

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(numeric)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(quiet_level, numeric))
    return handler
