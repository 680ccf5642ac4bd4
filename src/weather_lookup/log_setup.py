"""Structured JSON logging for the service and CLI."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from .redaction import sanitize_for_logging, sanitize_text

_EVENT_FIELDS = ("category", "request_id", "data")


class JsonConsoleFormatter(logging.Formatter):
    """JSON formatter for structured console logs."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_text(record.getMessage()),
        }
        for field in _EVENT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                event[field] = sanitize_for_logging(value)
        if record.exc_info:
            event["exception"] = sanitize_text(self.formatException(record.exc_info))
        return json.dumps(event, default=str, ensure_ascii=False)


def setup_logger(name: str = "weather_lookup", level: int | str = logging.INFO) -> logging.Logger:
    """Create and configure a process-wide logger."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(JsonConsoleFormatter())
    logger.addHandler(handler)
    return logger


def log_event(
    logger: logging.Logger,
    level: int,
    category: str,
    message: str,
    data: dict[str, Any] | None = None,
    request_id: str | None = None,
    *,
    exc_info: bool = False,
) -> None:
    """Emit one structured event; formatting is left to the handler."""
    logger.log(
        level,
        message,
        extra={"category": category, "data": data, "request_id": request_id},
        exc_info=exc_info,
    )
