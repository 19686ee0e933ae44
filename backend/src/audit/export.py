"""Audit trail exporters.

Both formats are deterministic: the same records in the same order always
render to the same bytes. Nested ``old_values``/``new_values`` are written
with sorted keys, timestamps as ISO 8601 UTC.
"""

import csv
import io
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List

from domain.audit.models import AuditRecord


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


# Column order of both formats
EXPORT_COLUMNS = (
    "id",
    "timestamp",
    "action",
    "table_name",
    "record_id",
    "actor_id",
    "ip_address",
    "user_agent",
    "old_values",
    "new_values",
    "risk_score",
)

# Values that are themselves JSON documents inside a CSV cell
NESTED_COLUMNS = ("old_values", "new_values")


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def canonical_json(value: Any) -> str:
    """Compact JSON with sorted keys, the form nested values take in CSV."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def record_to_row(record: AuditRecord) -> Dict[str, Any]:
    """Flatten an AuditRecord into an ordered dict of export columns."""
    return {
        "id": record.id,
        "timestamp": format_timestamp(record.timestamp),
        "action": record.action.value,
        "table_name": record.table_name,
        "record_id": record.record_id,
        "actor_id": record.actor_id,
        "ip_address": record.ip_address,
        "user_agent": record.user_agent,
        "old_values": record.old_values,
        "new_values": record.new_values,
        "risk_score": record.risk_score,
    }


def export_csv(records: Iterable[AuditRecord]) -> bytes:
    """Render records as CSV: a header row, then one row per record.

    Every cell is quoted and embedded quotes are doubled. Missing scalar
    values are empty cells; nested values are JSON (``null`` when absent).
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)

    for record in records:
        row = record_to_row(record)
        cells = []
        for column in EXPORT_COLUMNS:
            value = row[column]
            if column in NESTED_COLUMNS:
                cells.append(canonical_json(value))
            elif value is None:
                cells.append("")
            else:
                cells.append(str(value))
        writer.writerow(cells)

    return buffer.getvalue().encode("utf-8")


def _canonicalize(value: Any) -> Any:
    # Round-trip through sorted JSON so nested key order never depends on input order
    if value is None:
        return None
    return json.loads(canonical_json(value))


def export_json(records: Iterable[AuditRecord]) -> bytes:
    """Render records as a pretty-printed JSON array (column order preserved)."""
    rows: List[Dict[str, Any]] = []
    for record in records:
        row = record_to_row(record)
        for column in NESTED_COLUMNS:
            row[column] = _canonicalize(row[column])
        rows.append(row)
    return json.dumps(rows, indent=2, ensure_ascii=False).encode("utf-8")


def parse_format(value: "ExportFormat | str") -> ExportFormat:
    """Parse a format name (case-insensitive).

    Raises:
        ValueError: If the format is not csv or json
    """
    if isinstance(value, ExportFormat):
        return value
    return ExportFormat(str(value).strip().lower())


EXPORTERS: Dict[ExportFormat, Callable[[Iterable[AuditRecord]], bytes]] = {
    ExportFormat.CSV: export_csv,
    ExportFormat.JSON: export_json,
}


def export_records(records: Iterable[AuditRecord], export_format: "ExportFormat | str") -> bytes:
    """Render records in the requested format.

    Raises:
        ValueError: If the format is not csv or json
    """
    return EXPORTERS[parse_format(export_format)](list(records))


def export_filename(export_format: "ExportFormat | str", now: datetime) -> str:
    """File name used for downloads, e.g. audit_trail_2025-01-31_142530.csv"""
    fmt = parse_format(export_format)
    return f"audit_trail_{now.astimezone(timezone.utc).strftime('%Y-%m-%d_%H%M%S')}.{fmt.value}"
