"""Observability module for DocLifecycle.

Provides structured logging, correlation IDs, metrics, and health checks.
"""

from .logging_config import configure_logging, get_logger
from .metrics import (
    scans_total,
    scan_duration_seconds,
    scan_documents_total,
    worklist_size,
    evaluation_errors_total,
    unpoliced_documents,
    actions_total,
    audit_exports_total,
    audit_exported_records_total,
    record_scan,
    record_action,
    record_audit_export,
)
from .correlation import (
    correlation_id_var,
    correlation_scope,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from .health import HealthStatus, ComponentHealth
from .middleware import CorrelationIDMiddleware

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "scans_total",
    "scan_duration_seconds",
    "scan_documents_total",
    "worklist_size",
    "evaluation_errors_total",
    "unpoliced_documents",
    "actions_total",
    "audit_exports_total",
    "audit_exported_records_total",
    "record_scan",
    "record_action",
    "record_audit_export",
    # Correlation ID
    "correlation_id_var",
    "correlation_scope",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    # Health
    "HealthStatus",
    "ComponentHealth",
    # Middleware
    "CorrelationIDMiddleware",
]
