"""Document repository - SQLAlchemy adapter for DocumentStorePort"""

from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from models.tracked_document import TrackedDocumentModel
from domain.lifecycle.errors import PersistenceError
from domain.lifecycle.models import DocumentCategory, LifecycleState, TrackedDocument
from domain.lifecycle.ports import DocumentStorePort


# Fields lifecycle operations may change besides the state itself
MUTABLE_FIELDS = frozenset({"legal_hold", "retention_extension_days", "received_date"})


def to_domain(row: TrackedDocumentModel) -> TrackedDocument:
    """Map a tracked_document row onto the domain dataclass.

    An unknown category stays the raw string; the evaluator reports it.
    """
    try:
        category = DocumentCategory.parse(row.category)
    except ValueError:
        category = row.category
    return TrackedDocument(
        id=row.id,
        name=row.name,
        category=category,
        loan_id=row.loan_id,
        received_date=row.received_date,
        current_state=LifecycleState(row.current_state),
        legal_hold=bool(row.legal_hold),
        retention_extension_days=row.retention_extension_days or 0,
        version=row.version or 1,
    )


class SqlDocumentStore(DocumentStorePort):
    """Repository for tracked_document rows.

    Writes are flushed, not committed; the caller's transaction decides
    when a change becomes durable.
    """

    def __init__(self, db: Session):
        """Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def list_active_documents(
        self,
        category: Optional[DocumentCategory] = None,
    ) -> list[TrackedDocument]:
        query = select(TrackedDocumentModel).where(
            TrackedDocumentModel.current_state != LifecycleState.DELETED
        )
        if category is not None:
            query = query.where(TrackedDocumentModel.category == DocumentCategory.parse(category).value)
        query = query.order_by(TrackedDocumentModel.id)

        try:
            rows = self.db.execute(query).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to list documents: {e}") from e
        return [to_domain(row) for row in rows]

    def get_document(self, document_id: str) -> Optional[TrackedDocument]:
        row = self.db.get(TrackedDocumentModel, document_id, populate_existing=True)
        return to_domain(row) if row else None

    def add_document(
        self,
        name: str,
        category: DocumentCategory,
        received_date: Optional[date],
        loan_id: Optional[str] = None,
        document_id: Optional[str] = None,
        current_state: LifecycleState = LifecycleState.ACTIVE,
        legal_hold: bool = False,
    ) -> TrackedDocument:
        """Register a document (normally done by the upload pipeline)."""
        row = TrackedDocumentModel(
            name=name,
            category=DocumentCategory.parse(category).value,
            received_date=received_date,
            loan_id=loan_id,
            current_state=current_state,
            legal_hold=legal_hold,
            retention_extension_days=0,
        )
        if document_id:
            row.id = document_id

        try:
            self.db.add(row)
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to add document {name}: {e}") from e
        return to_domain(row)

    def update_document_state(
        self,
        document_id: str,
        new_state: LifecycleState,
        expected_version: Optional[int] = None,
        **changes: Any,
    ) -> TrackedDocument:
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot change fields: {sorted(unknown)}")

        try:
            row = self.db.get(TrackedDocumentModel, document_id, populate_existing=True)
            if row is None:
                raise PersistenceError(f"Document {document_id} not found")

            if expected_version is not None and row.version != expected_version:
                raise PersistenceError(
                    f"Document {document_id} changed concurrently "
                    f"(expected version {expected_version}, found {row.version})"
                )

            row.current_state = new_state
            for key, value in changes.items():
                setattr(row, key, value)

            self.db.flush()  # Bumps version; raises StaleDataError on a lost race
        except StaleDataError as e:
            raise PersistenceError(f"Document {document_id} changed concurrently") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update document {document_id}: {e}") from e

        return to_domain(row)
