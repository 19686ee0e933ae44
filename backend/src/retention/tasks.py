"""Celery tasks for the document lifecycle.

Tasks:
- lifecycle.scan: nightly scan at 02:00 UTC (Celery Beat, see
  workers/celery_app.py); optionally applies the automatic worklist entries
- lifecycle.apply_action: apply one action to one document
"""

import logging
from typing import Any, Dict, Optional

from celery import shared_task

from config import settings
from database import SessionLocal
from domain.lifecycle.errors import ConfigError
from domain.lifecycle.models import ActionRequest, ActionType, DocumentCategory
from .schemas import ActionResultResponse
from .service import RetentionService

logger = logging.getLogger(__name__)


@shared_task(name="lifecycle.scan", bind=True)
def lifecycle_scan_task(self, category: Optional[str] = None, apply: bool = False) -> Dict[str, Any]:
    """Scan all documents and optionally apply the automatic worklist entries.

    The scan itself is idempotent. Applying is safe to repeat too: every
    action re-checks its preconditions, so an entry applied by an earlier
    run is rejected as an invalid transition instead of applied twice.

    Args:
        category: Restrict the scan to one document category
        apply: Apply archive entries (and auto deletes when
            AUTO_APPLY_DELETES is set)

    Returns:
        Dict with scan counts, and action counts when ``apply`` is set.
        A configuration error yields status "config_error" instead.
    """
    logger.info("Lifecycle scan task started", extra={"category": category})

    db = SessionLocal()
    try:
        service = RetentionService(db)
        result = service.run_scan(category=DocumentCategory.parse(category) if category else None)

        summary: Dict[str, Any] = {
            "status": "partial" if result.is_partial else "completed",
            "scan_id": result.scan_id,
            "as_of": result.as_of.isoformat(),
            "documents_scanned": result.documents_scanned,
            "worklist_size": len(result.worklist),
            "pending_archive": result.pending_archive,
            "pending_delete": result.pending_delete,
            "manual_review": result.manual_review,
            "unpoliced": len(result.unpoliced),
            "errors": len(result.errors),
        }

        if apply:
            outcomes = service.apply_worklist(result, actor_id=settings.SYSTEM_ACTOR_ID)
            summary["actions_applied"] = sum(1 for o in outcomes if o.success)
            summary["actions_failed"] = sum(1 for o in outcomes if not o.success)

        logger.info("Lifecycle scan task completed", extra={"scan_id": result.scan_id})
        return summary

    except ConfigError as e:
        logger.error("Lifecycle scan aborted: invalid configuration", exc_info=True)
        return {"status": "config_error", "error": str(e)}

    finally:
        db.close()


@shared_task(name="lifecycle.apply_action", bind=True)
def lifecycle_apply_action_task(
    self,
    document_id: str,
    action: str,
    actor_id: Optional[str] = None,
    days: Optional[int] = None,
    confirmed: bool = False,
) -> Dict[str, Any]:
    """Apply one lifecycle action.

    Persistence failures are retried inside the service; a failure that
    survives the retries comes back as a failed result, not a task error.

    Args:
        document_id: Document to act on
        action: archive | delete | extend
        actor_id: Operator who requested the action
        days: Extension length for extend
        confirmed: Confirmation for deletions the policy does not automate
    """
    action_type = ActionType(action)
    if action_type == ActionType.EXTEND_RETENTION and days is None:
        days = settings.DEFAULT_EXTENSION_DAYS

    db = SessionLocal()
    try:
        service = RetentionService(db)
        result = service.apply_action(ActionRequest(
            document_id=document_id,
            action=action_type,
            actor_id=actor_id or settings.SYSTEM_ACTOR_ID,
            days=days,
            confirmed=confirmed,
        ))
        return ActionResultResponse.from_domain(result).model_dump()
    finally:
        db.close()
