"""Ports for the lifecycle engine's external collaborators.

The engine treats the document store as the system of record and never
caches document state across scans. The audit log store is append-only.
Notification delivery (email/SMS/in-app) is entirely the dispatcher's job.

Architecture: Hexagonal - port interfaces in the domain layer, adapters in
``infrastructure/``.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from domain.audit.models import AuditFilter, AuditRecord
from .models import DocumentCategory, LifecycleEvent, LifecycleState, TrackedDocument


class DocumentStorePort(ABC):
    """Port interface for the document system of record."""

    @abstractmethod
    def list_active_documents(
        self,
        category: Optional[DocumentCategory] = None,
    ) -> list[TrackedDocument]:
        """List every document that has not been deleted.

        Args:
            category: Optional category restriction

        Returns:
            Documents ordered by id
        """
        pass

    @abstractmethod
    def get_document(self, document_id: str) -> Optional[TrackedDocument]:
        """Fetch one document, or None if it does not exist."""
        pass

    @abstractmethod
    def update_document_state(
        self,
        document_id: str,
        new_state: LifecycleState,
        expected_version: Optional[int] = None,
        **changes: Any,
    ) -> TrackedDocument:
        """Persist a state change (and optional field changes) for one document.

        Args:
            document_id: Document to update
            new_state: State to store
            expected_version: Optimistic concurrency check; a mismatch fails
            **changes: Extra fields (legal_hold, retention_extension_days,
                received_date)

        Returns:
            The updated document

        Raises:
            PersistenceError: If the write failed or the version was stale
        """
        pass


class AuditLogStorePort(ABC):
    """Port interface for the append-only activity log."""

    @abstractmethod
    def append(self, record: AuditRecord) -> AuditRecord:
        """Durably append one record.

        Raises:
            PersistenceError: If the record could not be written
        """
        pass

    @abstractmethod
    def query(self, audit_filter: AuditFilter, limit: Optional[int] = None) -> list[AuditRecord]:
        """Return matching records, newest first."""
        pass


class NotificationDispatcherPort(ABC):
    """Port interface for "action due" / "action applied" events."""

    @abstractmethod
    def emit(self, event: LifecycleEvent) -> None:
        pass
