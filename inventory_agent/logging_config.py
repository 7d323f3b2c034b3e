"""Structured JSON logging.

Every record is written to stdout as one JSON object. Call sites attach fields
with ``extra={"context": {...}}``; ``bind`` returns an adapter that folds fixed
fields (usually the seller phone) into that context.
"""

import json
import logging
import sys
from datetime import datetime, timezone

NAMESPACE = "inventory_agent"

# Third-party loggers that are noisy at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "cloudinary", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        name = record.name
        if name.startswith(f"{NAMESPACE}."):
            name = name[len(NAMESPACE) + 1 :]

        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Replace root handlers with a single JSON stdout handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{NAMESPACE}.{name}")


class ContextAdapter(logging.LoggerAdapter):
    """Merges bound fields into each record's context. Per-call fields win."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = {**self.extra, **(extra.get("context") or {})}
        kwargs["extra"] = extra
        return msg, kwargs


def bind(logger: logging.Logger, **context) -> ContextAdapter:
    return ContextAdapter(logger, context)
