"""RetentionPolicy SQLAlchemy model"""

import uuid

from sqlalchemy import Column, Text, String, Integer, Boolean, CheckConstraint, Index

from .base import Base, UTCDateTime, utcnow


class RetentionPolicyModel(Base):
    """Retention policy for one document category.

    Administrators create and edit policies; inactive policies are kept for
    history but ignored by scans. The archive threshold may never exceed the
    retention period (enforced here and in the domain model).
    """
    __tablename__ = "retention_policy"
    __table_args__ = (
        Index("ix_retention_policy_category", "document_category"),
        CheckConstraint("retention_years >= 0", name="ck_retention_policy_retention_years"),
        CheckConstraint("archive_after_days >= 0", name="ck_retention_policy_archive_after_days"),
        CheckConstraint(
            "archive_after_days <= retention_years * 365",
            name="ck_retention_policy_archive_within_retention",
        ),
    )

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    document_category = Column(String(64), nullable=False)
    retention_years = Column(Integer, nullable=False)
    archive_after_days = Column(Integer, nullable=False)
    auto_delete = Column(Boolean, nullable=False, default=False)
    legal_hold_override = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
