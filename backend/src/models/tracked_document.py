"""TrackedDocument SQLAlchemy model

Documents are registered at upload time (outside the lifecycle engine) and
afterwards mutated only by lifecycle actions, legal-hold toggles and renewals.
"""

import uuid

from sqlalchemy import Column, Text, String, Integer, Boolean, Date, Enum as SQLEnum, Index

from domain.lifecycle.models import LifecycleState
from .base import Base, UTCDateTime, utcnow


class TrackedDocumentModel(Base):
    """Document row tracked by the retention lifecycle.

    ``version`` is an optimistic-lock counter: SQLAlchemy bumps it on every
    UPDATE and refuses to write over a row another session changed first.
    """
    __tablename__ = "tracked_document"
    __table_args__ = (
        Index("ix_tracked_document_category", "category"),
        Index("ix_tracked_document_loan_id", "loan_id"),
        Index("ix_tracked_document_state", "current_state"),
    )

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    category = Column(String(64), nullable=False)
    loan_id = Column(Text, nullable=True)
    received_date = Column(Date, nullable=True)  # NULL is reported, never guessed
    current_state = Column(
        SQLEnum(
            LifecycleState,
            name="lifecyclestate",
            native_enum=False,
            length=32,
            values_callable=lambda states: [s.value for s in states],
        ),
        nullable=False,
        default=LifecycleState.ACTIVE,
    )
    legal_hold = Column(Boolean, nullable=False, default=False)
    retention_extension_days = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}
