"""Audit trail domain models.

Audit records are append-only: once written they are never edited or
deleted by the lifecycle engine.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class AuditAction(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    VIEW = "VIEW"
    EXPORT = "EXPORT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"


@dataclass(frozen=True)
class AuditRecord:
    """One immutable entry of the activity log."""
    id: str
    timestamp: datetime
    actor_id: Optional[str]
    action: AuditAction
    table_name: str
    record_id: Optional[str]
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    risk_score: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class AuditFilter:
    """Filter over the audit log.

    All dimensions AND together. An empty dimension means "no restriction",
    never "exclude all". The date range is inclusive on both ends.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    actions: frozenset = field(default_factory=frozenset)
    tables: frozenset = field(default_factory=frozenset)
    actor_id: Optional[str] = None

    def __post_init__(self):
        # Normalize so callers can pass lists and naive datetimes
        object.__setattr__(self, "start", _as_utc(self.start))
        object.__setattr__(self, "end", _as_utc(self.end))
        object.__setattr__(
            self, "actions", frozenset(AuditAction(a) for a in (self.actions or ()))
        )
        object.__setattr__(self, "tables", frozenset(self.tables or ()))
        if self.actor_id == "":
            object.__setattr__(self, "actor_id", None)

    def matches(self, record: AuditRecord) -> bool:
        timestamp = _as_utc(record.timestamp)
        if self.start is not None and timestamp < self.start:
            return False
        if self.end is not None and timestamp > self.end:
            return False
        if self.actions and record.action not in self.actions:
            return False
        if self.tables and record.table_name not in self.tables:
            return False
        if self.actor_id is not None and record.actor_id != self.actor_id:
            return False
        return True
