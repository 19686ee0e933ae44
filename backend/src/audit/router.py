"""Audit log query and export endpoints.

Both endpoints are read-only with respect to existing records. The export
endpoint appends one EXPORT record so the trail shows who pulled it.

Filters (all AND together; omitted filters do not restrict):
- start / end: inclusive timestamp range (ISO 8601)
- action: repeatable, e.g. ?action=UPDATE&action=DELETE
- table: repeatable, e.g. ?table=tracked_document
- actor_id: single actor
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from config import settings
from database import get_db, transaction_factory
from dependencies import get_actor_id, get_client_details
from domain.audit.models import AuditAction, AuditFilter
from infrastructure.repositories.audit_log_repository import SqlAuditLogStore
from .export import ExportFormat
from .query import AuditQueryEngine
from .schemas import AuditLogListResponse, AuditLogResponse


router = APIRouter(prefix="/audit", tags=["Audit Logs"])

MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.JSON: "application/json",
}


def get_audit_filter(
    start: Optional[datetime] = Query(None, description="Minimum timestamp (inclusive)", examples=["2025-01-01T00:00:00Z"]),
    end: Optional[datetime] = Query(None, description="Maximum timestamp (inclusive)", examples=["2025-01-31T23:59:59Z"]),
    action: Optional[List[AuditAction]] = Query(None, description="Action types"),
    table: Optional[List[str]] = Query(None, description="Table names"),
    actor_id: Optional[str] = Query(None, description="Single actor id"),
) -> AuditFilter:
    if start and end and start > end:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="start must not be after end",
        )
    return AuditFilter(start=start, end=end, actions=action or (), tables=table or (), actor_id=actor_id)


@router.get(
    "",
    response_model=AuditLogListResponse,
    summary="Query audit logs",
    description="Filtered audit log entries, newest first, limited for preview",
)
def query_audit_logs(
    audit_filter: AuditFilter = Depends(get_audit_filter),
    limit: int = Query(settings.AUDIT_PREVIEW_LIMIT, ge=1, le=1000, description="Maximum entries"),
    db: Session = Depends(get_db),
) -> AuditLogListResponse:
    """Query audit logs.

    Example:
        GET /audit?action=DELETE&table=tracked_document&start=2025-01-01T00:00:00Z&limit=50
    """
    engine = AuditQueryEngine(SqlAuditLogStore(db))
    records = engine.query(audit_filter, limit=limit)
    return AuditLogListResponse(
        entries=[AuditLogResponse.from_domain(r) for r in records],
        count=len(records),
        limit=limit,
    )


@router.get(
    "/export",
    summary="Export audit logs",
    description="Download all matching entries as CSV or JSON",
)
def export_audit_logs(
    export_format: ExportFormat = Query(ExportFormat.CSV, alias="format"),
    audit_filter: AuditFilter = Depends(get_audit_filter),
    db: Session = Depends(get_db),
    actor_id: Optional[str] = Depends(get_actor_id),
    client: dict = Depends(get_client_details),
) -> Response:
    """Export matching audit records.

    The export itself is recorded (action EXPORT, table audit_log) after
    the rows are read, so it never appears in its own output.
    """
    store = SqlAuditLogStore(db)
    engine = AuditQueryEngine(store)

    records = engine.query(audit_filter, limit=settings.AUDIT_EXPORT_MAX_ROWS)
    payload = engine.export(records, export_format)

    with transaction_factory(db)():
        engine.record_export(audit_filter, export_format, len(records), actor_id=actor_id, **client)

    filename = engine.export_filename(export_format)
    return Response(
        content=payload,
        media_type=MEDIA_TYPES[export_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
