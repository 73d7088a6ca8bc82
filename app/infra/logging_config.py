"""JSON logging configuration for the API and the Celery worker."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from app.config import get_settings

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "context") and record.context:
            log_data["context"] = record.context

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class LoggingConfig:
    """Configure the root logger once. Instantiating again re-applies the level."""

    def __init__(self, level: Optional[str] = None) -> None:
        self.level = (level or get_settings().log_level or "INFO").upper()
        self.setup()

    def setup(self) -> None:
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, self.level, logging.INFO))

        for handler in root_logger.handlers[:]:
            if getattr(handler, "_meta_inbox", False):
                root_logger.removeHandler(handler)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        handler._meta_inbox = True
        root_logger.addHandler(handler)

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(f"meta_inbox.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context to log records."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        if context or self.extra:
            combined_context = {**self.extra, **(context or {})}
            kwargs["extra"] = {"context": combined_context}
        return msg, kwargs
