"""
Structured JSON logging utilities.

The library itself only ever calls ``logging.getLogger(__name__)``; hosts that
want machine-readable diagnostics can opt in with
``configure_structured_logging``.

Each line is one JSON object with a fixed leading layout:

    {"timestamp": ..., "level": ..., "logger": ..., "message": ...,
     "app_key": ..., "session_id": ..., "blob_id": ...,
     "error": {"type": ..., "message": ..., "details": {...}},
     "exception": "<traceback>", "extra": {...}}

Context and error keys only appear when set; any other ``extra`` values are
grouped under "extra", sorted by key.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .exceptions import TelemetryError

# Client context promoted to top-level keys, in this order
CONTEXT_FIELDS = ("app_key", "session_id", "blob_id")

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
}


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


class StructuredJsonFormatter(logging.Formatter):
    """JSON formatter emitting one telemetry log entry per line.

    ``TelemetryError`` exceptions are reported with their ``details`` so a
    failed append or upload can be diagnosed from the log line alone.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = _json_safe(value)

        if record.exc_info:
            error = record.exc_info[1]
            if isinstance(error, TelemetryError):
                entry["error"] = {
                    "type": type(error).__name__,
                    "message": error.message,
                    "details": {key: _json_safe(value) for key, value in error.details.items()},
                }
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: _json_safe(value)
            for key, value in sorted(record.__dict__.items())
            if key not in _STANDARD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = "telemetry_spool",
) -> logging.Logger:
    """
    Attach a JSON handler writing to stdout.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: the package logger)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())

    logger.addHandler(handler)
    logger.setLevel(level)

    return logger


class TelemetryLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds client context to all log messages.

    Used by the client facade to stamp every line with the app key and the
    current session id. The context mapping is read on every call, so values
    set after construction (the session id once a session opens) show up on
    later lines. Unset (None) values are left out, and ``extra`` passed at the
    call site wins over the context.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = {key: value for key, value in self.extra.items() if value is not None}
        kwargs["extra"] = {**context, **kwargs.get("extra", {})}
        return msg, kwargs
