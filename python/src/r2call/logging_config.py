"""Structured logging configuration for r2call."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

# Extras attached by the request pipeline: dispatch logs method/url/status/
# duration_ms, body preparation logs prep_ms, client operations bucket/key.
_EXTRA_FIELDS = ("method", "url", "status", "duration_ms", "prep_ms", "bucket", "key")

# Transport libraries that log every request at INFO; r2call's own dispatch
# log already covers that.
_TRANSPORT_LOGGERS = ("httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects.

    Fields: timestamp, level, logger, message, plus any request extras.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            {
                key: getattr(record, key)
                for key in _EXTRA_FIELDS
                if getattr(record, key, None) is not None
            }
        )
        return json.dumps(entry, default=str)


def configure_logging(
    level: str = "WARNING", fmt: str = "text", stream: TextIO | None = None
) -> None:
    """Configure root logging for a CLI invocation.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: 'text' for human-readable lines or 'json' for structured output.
        stream: Destination; defaults to stderr so stdout stays object data.
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(numeric_level)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)

    transport_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
