"""AuditQueryEngine - filtered retrieval and export of the activity log."""

import logging
from typing import Optional

from domain.audit.models import AuditAction, AuditFilter, AuditRecord
from domain.lifecycle.models import Clock, utc_now
from domain.lifecycle.ports import AuditLogStorePort
from observability.metrics import record_audit_export
from .export import ExportFormat, export_filename, export_records, parse_format
from .service import record_audit_event


logger = logging.getLogger(__name__)


class AuditQueryEngine:
    """Builds filtered queries over the audit log and renders exports.

    Read paths never modify the log. The only write is the optional EXPORT
    record that ``record_export`` appends to document who pulled the trail.
    """

    def __init__(self, store: AuditLogStorePort, clock: Clock = utc_now):
        self.store = store
        self._clock = clock

    def query(self, audit_filter: Optional[AuditFilter] = None, limit: Optional[int] = None) -> list[AuditRecord]:
        """Return records matching the filter, newest first.

        Args:
            audit_filter: Filter (None means everything)
            limit: Maximum rows, used for previews

        Raises:
            ValueError: If limit is negative or the range is inverted
        """
        audit_filter = audit_filter or AuditFilter()
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        if audit_filter.start and audit_filter.end and audit_filter.start > audit_filter.end:
            raise ValueError("start must not be after end")

        records = self.store.query(audit_filter, limit=limit)
        logger.info(
            f"Audit query returned {len(records)} records",
            extra={"record_count": len(records), "limit": limit},
        )
        return records

    def export(self, records: list[AuditRecord], export_format: "ExportFormat | str") -> bytes:
        """Render records in csv or json. Output is byte-identical for equal input."""
        fmt = parse_format(export_format)
        payload = export_records(records, fmt)
        record_audit_export(fmt.value, len(records))
        return payload

    def export_filename(self, export_format: "ExportFormat | str") -> str:
        return export_filename(export_format, self._clock())

    def record_export(
        self,
        audit_filter: AuditFilter,
        export_format: "ExportFormat | str",
        record_count: int,
        actor_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditRecord:
        """Append an EXPORT record describing an export that was served."""
        return record_audit_event(
            self.store,
            action=AuditAction.EXPORT,
            table_name="audit_log",
            actor_id=actor_id,
            new_values={
                "format": parse_format(export_format).value,
                "record_count": record_count,
                "filter": describe_filter(audit_filter),
            },
            risk_score=40,
            ip_address=ip_address,
            user_agent=user_agent,
            timestamp=self._clock(),
        )


def describe_filter(audit_filter: AuditFilter) -> dict:
    """JSON-safe description of a filter for audit payloads."""
    return {
        "start": audit_filter.start.isoformat() if audit_filter.start else None,
        "end": audit_filter.end.isoformat() if audit_filter.end else None,
        "actions": sorted(a.value for a in audit_filter.actions),
        "tables": sorted(audit_filter.tables),
        "actor_id": audit_filter.actor_id,
    }
