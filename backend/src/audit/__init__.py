"""Audit trail module - append-only activity log, query and export."""

from .export import EXPORT_COLUMNS, ExportFormat, export_csv, export_json, export_records
from .query import AuditQueryEngine
from .service import record_audit_event

__all__ = [
    "EXPORT_COLUMNS",
    "ExportFormat",
    "export_csv",
    "export_json",
    "export_records",
    "AuditQueryEngine",
    "record_audit_event",
]
