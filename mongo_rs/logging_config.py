"""
Leveled, structured logging for the replica set tools.

Every state transition is logged through :func:`log_event`, which attaches an
``event`` name and a ``fields`` dict to the record. The plain formatter shows
them inline; the JSON formatter emits one object per line.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event = getattr(record, "event", None)
        if event:
            entry["event"] = event
        fields = getattr(record, "fields", None)
        if fields:
            entry["fields"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class EventFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        event = getattr(record, "event", None)
        if event:
            fields = getattr(record, "fields", None) or {}
            extra = " ".join(f"{k}={v}" for k, v in fields.items())
            line = f"{line} [{event}{' ' + extra if extra else ''}]"
        return line


def setup_logging(level: str = "INFO", json_output: bool = False, stream=None) -> logging.Logger:
    """Configure the ``mongo_rs`` logger tree and return its root."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else EventFormatter(LOG_FORMAT))

    logger = logging.getLogger("mongo_rs")
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    return logger


def log_event(logger: logging.Logger, level: int, event: str, message: Optional[str] = None, **fields) -> None:
    logger.log(level, message or event, extra={"event": event, "fields": fields})
