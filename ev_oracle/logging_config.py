"""Logging setup for the API server and the CLI.

Records are written to stderr, one JSON object per line outside
development and a compact human-readable line in development. Context
passed through ``extra=`` is kept in both forms.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from ev_oracle.config import Environment, get_settings

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}

# Client libraries that log every request at INFO/DEBUG.
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "qdrant_client")


def _record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the fields passed via ``extra=`` on a log call."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """One JSON document per record; ``extra=`` context goes under "extra"."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.pathname}:{record.lineno} in {record.funcName}",
        }

        context = _record_extras(record)
        if context:
            entry["extra"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class DevFormatter(logging.Formatter):
    """Single-line console format with ``key=value`` context appended."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_extras(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} | {pairs}"


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
) -> logging.Logger:
    """Install a single stderr handler on the root logger.

    Args:
        level: Level name; defaults to ``settings.log_level``.
        json_output: Use JSON lines; defaults to True outside development.

    Returns:
        The root logger.
    """
    settings = get_settings()
    resolved_level = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(resolved_level, int):
        resolved_level = logging.INFO

    if json_output is None:
        json_output = settings.environment is not Environment.DEVELOPMENT

    # stderr keeps CLI stdout clean for --json output
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else DevFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(resolved_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    """Module logger; call with ``__name__``."""
    return logging.getLogger(name)
