"""AuditLog SQLAlchemy model"""

import uuid

from sqlalchemy import Column, Text, String, Integer, Index, event

from .base import Base, PortableJSONB, UTCDateTime, utcnow


class AuditLog(Base):
    """AuditLog model for the immutable activity log.

    Records every lifecycle action, policy change and export for compliance
    review. Entries are append-only; the ORM refuses updates and deletes.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_created_at", "created_at"),
        Index("ix_audit_log_table_created_at", "table_name", "created_at"),
        Index("ix_audit_log_action", "action"),
        Index("ix_audit_log_actor_id", "actor_id"),
    )

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    actor_id = Column(Text, nullable=True)
    action = Column(String(16), nullable=False)
    table_name = Column(Text, nullable=False)
    record_id = Column(Text, nullable=True)
    old_values = Column(PortableJSONB, nullable=True)
    new_values = Column(PortableJSONB, nullable=True)
    risk_score = Column(Integer, nullable=True)
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise ValueError(f"audit_log entry {target.id} is immutable")


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise ValueError(f"audit_log entry {target.id} cannot be deleted")
