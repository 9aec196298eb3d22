"""Structured JSON logging configuration."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

# Extra fields attached by the session, runner and scheduler
EXTRA_FIELDS = (
    "session_id",
    "phase",
    "customer_id",
    "entries",
    "run_id",
    "status_code",
    "duration_s",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; only whitelisted extras are emitted."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        log_entry.update(
            (key, getattr(record, key))
            for key in EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "INFO") -> None:
    """Send partner_import logs to stderr as JSON.

    urllib3 logs full request URLs at DEBUG, continuation tokens included,
    so it is held at WARNING whatever the package level.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    package_logger = logging.getLogger("partner_import")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.propagate = False
    logging.getLogger("urllib3").setLevel(logging.WARNING)
