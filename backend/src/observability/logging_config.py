"""Logging setup: one JSON object per line, tagged with the correlation id.

Scans, actions and exports pass structured context through ``extra``; the
keys listed in EXTRA_FIELDS are lifted into the JSON line so log queries
can filter on scan_id, document_id or actor_id directly.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from .correlation import get_correlation_id

EXTRA_FIELDS = (
    "scan_id",
    "document_id",
    "policy_id",
    "action",
    "actor_id",
    "reason",
    "category",
    "event_kind",
    "payload",
    "record_count",
    "worklist_size",
    "error_count",
    "unpoliced_count",
    "attempt",
    "status_code",
    "duration_ms",
)

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"


class CorrelationIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", get_correlation_id()),
            "message": record.getMessage(),
        }
        line.update({key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)})

        if record.exc_info:
            line["error"] = str(record.exc_info[1])
            line["traceback"] = self.formatException(record.exc_info)

        return json.dumps(line, default=str)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines when True, a readable text format otherwise
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    handler.addFilter(CorrelationIDFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    # Library chatter stays out of the application log
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "celery.redirected"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
