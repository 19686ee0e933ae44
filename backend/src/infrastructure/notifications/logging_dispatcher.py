"""Notification dispatcher that writes lifecycle events to the log.

Email/SMS/in-app delivery is owned by a separate service which tails these
structured log lines (or replaces this adapter). The engine only needs
``emit`` to return promptly.
"""

import logging

from domain.lifecycle.models import LifecycleEvent
from domain.lifecycle.ports import NotificationDispatcherPort


logger = logging.getLogger(__name__)


class LoggingNotificationDispatcher(NotificationDispatcherPort):
    """Emits each event as one structured INFO log line."""

    def emit(self, event: LifecycleEvent) -> None:
        logger.info(
            f"Lifecycle event {event.kind.value} for document {event.document_id}",
            extra={
                "event_kind": event.kind.value,
                "document_id": event.document_id,
                "occurred_at": event.occurred_at.isoformat(),
                "payload": event.payload,
            },
        )
