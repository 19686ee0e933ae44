"""Audit log repository - SQLAlchemy adapter for AuditLogStorePort"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.audit_log import AuditLog
from domain.audit.models import AuditAction, AuditFilter, AuditRecord
from domain.lifecycle.errors import PersistenceError
from domain.lifecycle.ports import AuditLogStorePort


def to_domain(row: AuditLog) -> AuditRecord:
    return AuditRecord(
        id=row.id,
        timestamp=row.created_at,
        actor_id=row.actor_id,
        action=AuditAction(row.action),
        table_name=row.table_name,
        record_id=row.record_id,
        old_values=row.old_values,
        new_values=row.new_values,
        risk_score=row.risk_score,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )


class SqlAuditLogStore(AuditLogStorePort):
    """Append-only access to the audit_log table.

    There is deliberately no update or delete method.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(self, record: AuditRecord) -> AuditRecord:
        entry = AuditLog(
            id=record.id,
            created_at=record.timestamp,
            actor_id=record.actor_id,
            action=record.action.value,
            table_name=record.table_name,
            record_id=record.record_id,
            old_values=record.old_values,
            new_values=record.new_values,
            risk_score=record.risk_score,
            ip_address=record.ip_address,
            user_agent=record.user_agent,
        )
        try:
            self.db.add(entry)
            self.db.flush()  # Get the row written without committing the transaction
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to append audit record {record.id}: {e}") from e
        return record

    def query(self, audit_filter: AuditFilter, limit: Optional[int] = None) -> list[AuditRecord]:
        query = select(AuditLog)

        if audit_filter.start is not None:
            query = query.where(AuditLog.created_at >= audit_filter.start)
        if audit_filter.end is not None:
            query = query.where(AuditLog.created_at <= audit_filter.end)
        if audit_filter.actions:
            query = query.where(AuditLog.action.in_(sorted(a.value for a in audit_filter.actions)))
        if audit_filter.tables:
            query = query.where(AuditLog.table_name.in_(sorted(audit_filter.tables)))
        if audit_filter.actor_id is not None:
            query = query.where(AuditLog.actor_id == audit_filter.actor_id)

        # Newest first; id breaks timestamp ties so results are reproducible
        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        if limit is not None:
            query = query.limit(limit)

        try:
            rows = self.db.execute(query).scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to query audit log: {e}") from e
        return [to_domain(row) for row in rows]
