"""Structured logging for the Gadget Console.

Log lines carry the emitting component (last segment of the logger name) and
any of ``CONTEXT_FIELDS`` passed as extras or bound with
``ConsoleLogger.with_context``. Two renderings are available: a human
readable line for terminals and one JSON object per line for collectors.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

# Extra fields rendered by the formatters when present on a record.
# Confirmation codes and bearer tokens must never be passed as extras.
CONTEXT_FIELDS = ("operation", "gadget_id", "status")

# Loggers whose per-request chatter is held at WARNING or above
NOISY_LOGGERS = ("httpx", "httpcore")


def _component(record: logging.LogRecord) -> str:
    """Return the short component name, e.g. "gadget_console.controller" -> "controller"."""
    return record.name.rsplit(".", 1)[-1]


def _context(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the context fields present on ``record``, in declaration order."""
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=UTC)


class StructuredFormatter(logging.Formatter):
    """Formatter for terminal output.

    Example line::

        2024-05-01 12:00:00.123 [INFO    ] [transitions ] [operation=transition gadget_id=g-1]
        Status change accepted
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as a single structured line.

        Args:
            record: The log record to format.

        Returns:
            Formatted log string.
        """
        stamp = _timestamp(record).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        parts = [stamp, f"[{record.levelname:8}]", f"[{_component(record):12}]"]

        context = _context(record)
        if context:
            parts.append("[" + " ".join(f"{k}={v}" for k, v in context.items()) + "]")

        parts.append(record.getMessage())
        if record.exc_info:
            parts.append(self.formatException(record.exc_info))
        return " ".join(parts)


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON-formatted log string.
        """
        payload: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ContextAdapter(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that merges bound context into every record.

    Per-call ``extra`` values win over bound ones.

    Usage:
        ctx_logger = get_logger(__name__).with_context(gadget_id="g-1")
        ctx_logger.info("Requesting status change", extra={"status": "Deployed"})
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        """Merge the bound context into the call's ``extra``."""
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


class ConsoleLogger(logging.Logger):
    """Logger class used for every ``gadget_console`` logger."""

    def with_context(self, **context: Any) -> ContextAdapter:
        """Bind context fields to all messages logged through the returned adapter.

        Args:
            **context: Context fields, normally drawn from CONTEXT_FIELDS.

        Returns:
            ContextAdapter with the specified context.
        """
        return ContextAdapter(self, context)


logging.setLoggerClass(ConsoleLogger)


def get_logger(name: str) -> ConsoleLogger:
    """Get a logger with the custom ConsoleLogger class.

    Args:
        name: Logger name (typically __name__).

    Returns:
        ConsoleLogger instance.
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    replace_handlers: bool = True,
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR). Unknown values
            mean INFO.
        json_format: If True, output JSON-formatted logs.
        replace_handlers: If True, remove existing root handlers first.
            Set to False to keep handlers installed by a host (e.g., uvicorn).
    """
    numeric_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    if replace_handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if json_format else StructuredFormatter())
    root_logger.addHandler(handler)

    logging.getLogger("gadget_console").setLevel(numeric_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
