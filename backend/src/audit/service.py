"""Audit logging service.

Central helper for appending immutable audit records. Every lifecycle
action, policy change, legal-hold toggle, renewal and export goes through
``record_audit_event``.

Table names used by the engine:
- retention_policy: policy INSERT / UPDATE
- tracked_document: archive (UPDATE), delete (DELETE), extend, hold, renewal
- audit_log: EXPORT of the trail itself
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request

from domain.audit.models import AuditAction, AuditRecord
from domain.lifecycle.models import utc_now
from domain.lifecycle.ports import AuditLogStorePort


def record_audit_event(
    store: AuditLogStorePort,
    action: AuditAction,
    table_name: str,
    record_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    risk_score: Optional[int] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> AuditRecord:
    """Append one audit record.

    All parameters are stored as-is. The store flushes but does not commit;
    the caller's transaction makes the record durable.

    Args:
        store: Audit log store
        action: AuditAction (UPDATE, DELETE, EXPORT, ...)
        table_name: Table the change applies to
        record_id: Primary key of the affected row
        actor_id: Operator (or "system" for scheduled work)
        old_values: Values before the change
        new_values: Values after the change (or the rejection details)
        risk_score: 0-100 review priority
        ip_address: Client IP address
        user_agent: Client User-Agent header
        timestamp: Override for the record time (defaults to now, UTC)

    Returns:
        AuditRecord: The appended record

    Example:
        record_audit_event(
            store,
            action=AuditAction.UPDATE,
            table_name="tracked_document",
            record_id=document.id,
            actor_id="ops-42",
            old_values={"current_state": "Active"},
            new_values={"current_state": "Archived"},
            risk_score=20,
        )
    """
    record = AuditRecord(
        id=str(uuid.uuid4()),
        timestamp=timestamp or utc_now(),
        actor_id=actor_id,
        action=AuditAction(action),
        table_name=table_name,
        record_id=record_id,
        old_values=old_values,
        new_values=new_values,
        risk_score=risk_score,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return store.append(record)


def client_details(request: Optional[Request]) -> Dict[str, Optional[str]]:
    """Extract client IP and User-Agent from a FastAPI request.

    Returns keyword arguments for ``record_audit_event``.
    """
    if request is None:
        return {"ip_address": None, "user_agent": None}

    # Extract client IP (handle proxies via X-Forwarded-For)
    ip_address = request.client.host if request.client else None
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Use first IP in chain (original client)
        ip_address = forwarded_for.split(",")[0].strip()

    return {"ip_address": ip_address, "user_agent": request.headers.get("User-Agent")}
