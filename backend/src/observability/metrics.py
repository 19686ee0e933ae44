"""Prometheus metrics for DocLifecycle.

Defines operational metrics for scans, lifecycle actions and audit exports.
"""

from prometheus_client import Counter, Histogram, Gauge

# Scan metrics
scans_total = Counter(
    "doclifecycle_scans_total",
    "Total number of lifecycle scans",
    ["outcome"]  # outcome: complete|partial|cancelled|config_error
)

scan_duration_seconds = Histogram(
    "doclifecycle_scan_duration_seconds",
    "Time spent on one lifecycle scan in seconds",
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0, 900.0]
)

scan_documents_total = Counter(
    "doclifecycle_scan_documents_total",
    "Documents evaluated by scans"
)

worklist_size = Gauge(
    "doclifecycle_worklist_size",
    "Entries in the most recent worklist",
    ["action"]  # action: archive|delete
)

evaluation_errors_total = Counter(
    "doclifecycle_evaluation_errors_total",
    "Documents that could not be evaluated"
)

unpoliced_documents = Gauge(
    "doclifecycle_unpoliced_documents",
    "Documents without an active policy in the most recent scan"
)

# Action metrics
actions_total = Counter(
    "doclifecycle_actions_total",
    "Lifecycle actions applied",
    ["action", "outcome"]  # outcome: success|rejected|failed
)

# Audit metrics
audit_exports_total = Counter(
    "doclifecycle_audit_exports_total",
    "Audit trail exports",
    ["format"]  # format: csv|json
)

audit_exported_records_total = Counter(
    "doclifecycle_audit_exported_records_total",
    "Audit records written to exports",
    ["format"]
)


def record_scan(result, duration_seconds: float, outcome: str) -> None:
    """Record the metrics of one finished scan."""
    scans_total.labels(outcome=outcome).inc()
    scan_duration_seconds.observe(duration_seconds)
    scan_documents_total.inc(result.documents_scanned)
    worklist_size.labels(action="archive").set(result.pending_archive)
    worklist_size.labels(action="delete").set(result.pending_delete + result.manual_review)
    evaluation_errors_total.inc(len(result.errors))
    unpoliced_documents.set(len(result.unpoliced))


def record_action(action: str, outcome: str) -> None:
    actions_total.labels(action=action, outcome=outcome).inc()


def record_audit_export(export_format: str, record_count: int) -> None:
    audit_exports_total.labels(format=export_format).inc()
    audit_exported_records_total.labels(format=export_format).inc(record_count)
