"""Log line formatters: human text or one JSON object per line."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(run_tag)s%(name)s: %(message)s"
TEXT_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# Attributes every LogRecord carries, plus those added by formatting and by
# RunContextFilter. Anything else came from ``extra=``.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "run_id",
    "run_tag",
}


class JSONFormatter(logging.Formatter):
    """Render a record as a single-line JSON object.

    Keys: ``timestamp`` (UTC, ms precision), ``level``, ``logger``,
    ``message``, then ``run_id`` inside an extraction run, ``context`` for
    ``extra=`` fields and ``exception`` when exc_info is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if run_id := getattr(record, "run_id", None):
            entry["run_id"] = run_id

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED and not key.startswith("_")
        }
        if extra:
            entry["context"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


def build_formatter(style: str) -> logging.Formatter:
    """Formatter for a LoggingConfig.format value ("text" or "json")."""
    if style.casefold() == "json":
        return JSONFormatter()
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)
