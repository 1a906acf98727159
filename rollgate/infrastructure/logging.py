"""
Centralized Logging

Architectural Intent:
- Structured JSON or human-readable logging for all rollgate components
- Configurable log levels via CLI flags (--verbose, --debug, --json-logs)
- Terminal rollout records are emitted as one JSON line on the
  "rollgate.audit" logger for external log/metrics collection
"""

import json
import logging
import sys
from datetime import datetime, UTC

from rollgate.domain.events.event_base import DomainEvent

AUDIT_LOGGER = "rollgate.audit"

NOISY_LOGGERS = ("paramiko", "invoke", "fabric", "httpx", "httpcore")


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        rollout = getattr(record, "rollout", None)
        if rollout:
            log_entry["rollout"] = rollout
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = False,
) -> None:
    """Configure logging for rollgate.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, etc.)
        json_format: If True, use JSON structured output. Otherwise human-readable.
    """
    root = logging.getLogger("rollgate")
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )

    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # The audit record is emitted regardless of the chosen verbosity
    audit = logging.getLogger(AUDIT_LOGGER)
    audit.setLevel(logging.INFO)
    audit.handlers.clear()
    audit_handler = logging.StreamHandler(sys.stderr)
    audit_handler.setFormatter(JSONFormatter())
    audit.addHandler(audit_handler)
    audit.propagate = False


async def log_rollout_record(event: DomainEvent) -> None:
    """Event bus handler: write a finished rollout as one audit line."""
    record = event.to_dict()
    logging.getLogger(AUDIT_LOGGER).info(
        "rollout %s %s",
        record.get("rollout_id", event.aggregate_id),
        record.get("status", event.event_type),
        extra={"rollout": record},
    )
