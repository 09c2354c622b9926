"""Structured Logging: JSON formatter and setup for the server process.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (method, path, prefix, port, state, error_code, timeout) surfaced when present
    - JSON format in production, human-readable in development

Design Decisions:
    - Standard logging with an injected Logger: Config carries it to every component
    - setup_logging called once by the entry point, never on import
"""

import logging
import json
from datetime import datetime, timezone

EXTRA_FIELDS = (
    "method", "path", "prefix", "port", "state", "error_code", "timeout",
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's creation time in UTC."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, timezone.utc)
        log = dict(
            timestamp=created.isoformat(),
            level=record.levelname,
            logger=record.name,
            message=record.getMessage(),
        )
        log.update(
            (key, record.__dict__[key]) for key in EXTRA_FIELDS
            if record.__dict__.get(key) is not None
        )
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Configure root logging for the application. Returns the installed handler."""
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
