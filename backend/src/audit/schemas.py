"""Pydantic schemas for audit log endpoints.

Audit logs are read-only through the API (no create/update/delete).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from domain.audit.models import AuditRecord


class AuditLogResponse(BaseModel):
    """One audit log entry. All fields are read-only."""

    id: str = Field(..., description="Audit record identifier")
    timestamp: datetime = Field(..., description="Event timestamp (UTC)")
    actor_id: Optional[str] = Field(None, description="Who performed the action (None for anonymous)")
    action: str = Field(..., description="INSERT, UPDATE, DELETE, LOGIN, LOGOUT, VIEW, EXPORT, APPROVE or REJECT")
    table_name: str = Field(..., description="Affected table (tracked_document, retention_policy, ...)")
    record_id: Optional[str] = Field(None, description="Primary key of the affected row")
    old_values: Optional[Dict[str, Any]] = Field(None, description="Values before the change")
    new_values: Optional[Dict[str, Any]] = Field(None, description="Values after the change")
    risk_score: Optional[int] = Field(None, description="Review priority 0-100")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client User-Agent header")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "timestamp": "2025-01-04T12:00:00Z",
                "actor_id": "ops-42",
                "action": "UPDATE",
                "table_name": "tracked_document",
                "record_id": "doc-1842",
                "old_values": {"current_state": "ArchivePending"},
                "new_values": {"current_state": "Archived", "action": "archive", "outcome": "applied"},
                "risk_score": 20,
                "ip_address": "192.168.1.100",
                "user_agent": "Mozilla/5.0...",
            }
        }
    )

    @classmethod
    def from_domain(cls, record: AuditRecord) -> "AuditLogResponse":
        return cls(
            id=record.id,
            timestamp=record.timestamp,
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


class AuditLogListResponse(BaseModel):
    """Audit query result, newest first."""

    entries: List[AuditLogResponse] = Field(..., description="Matching audit log entries")
    count: int = Field(..., description="Number of entries returned")
    limit: Optional[int] = Field(None, description="Row limit applied to the query")
