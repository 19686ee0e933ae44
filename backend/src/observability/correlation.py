"""Correlation ID management.

One id ties together every log line of an HTTP request or of a scan run.
Requests take it from the ``X-Request-ID`` header (or generate one); scans
use their scan id.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

# Context variable for correlation_id (async-safe)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def generate_correlation_id() -> str:
    """Generate a new unique correlation ID.

    Returns:
        str: UUID v4 correlation ID
    """
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Get current correlation ID from context.

    Returns:
        str: Current correlation ID or "no-correlation-id" if not set
    """
    return correlation_id_var.get() or "no-correlation-id"


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


@contextmanager
def correlation_scope(correlation_id: str) -> Generator[str, None, None]:
    """Bind a correlation id for the duration of a block, then restore the previous one.

    Example:
        with correlation_scope(scan_id):
            logger.info("Scan started")
    """
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)
