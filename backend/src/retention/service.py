"""Retention service - wires the lifecycle engine to one database session.

The API, the CLI and the Celery tasks all go through this class so they
share one composition of stores, scheduler and executor:

- PolicyStore: policies and validity rules (audited)
- ScanScheduler: builds the worklist
- ActionExecutor: applies archive / delete / extend with bounded retries
- ValidityTracker: expiration status, renewals and renewal reminders
- AuditQueryEngine: audit trail queries and exports
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from audit.query import AuditQueryEngine
from audit.service import record_audit_event
from config import Settings, get_settings
from database import transaction_factory
from domain.audit.models import AuditAction
from domain.lifecycle.errors import (
    EvaluationError,
    NotFoundError,
    PreconditionError,
    PreconditionReason,
)
from domain.lifecycle.models import (
    ActionRequest,
    ActionResult,
    ActionType,
    Clock,
    DocumentCategory,
    EventKind,
    LifecycleEvent,
    LifecycleState,
    ScanIssue,
    ScanResult,
    TrackedDocument,
    ValidityAssessment,
    ValidityStatus,
    utc_now,
)
from domain.lifecycle.ports import NotificationDispatcherPort
from domain.validity.tracker import ValidityTracker
from infrastructure.notifications.logging_dispatcher import LoggingNotificationDispatcher
from infrastructure.repositories.audit_log_repository import SqlAuditLogStore
from infrastructure.repositories.document_repository import SqlDocumentStore
from .executor import ActionExecutor, TRACKED_DOCUMENT_TABLE, apply_with_retry, document_values
from .locks import DocumentLockRegistry
from .policy_store import PolicyStore
from .scheduler import ScanScheduler

logger = logging.getLogger(__name__)


class RetentionService:
    """Facade over the lifecycle engine for one database session."""

    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationDispatcherPort] = None,
        clock: Clock = utc_now,
        settings: Optional[Settings] = None,
        locks: Optional[DocumentLockRegistry] = None,
    ):
        """Initialize retention service.

        Args:
            db: Database session
            notifier: Event dispatcher (defaults to the logging dispatcher)
            clock: Time source, overridable in tests
            settings: Settings (defaults to the cached application settings)
            locks: Per-document lock registry (defaults to the process-wide one)
        """
        self.db = db
        self.settings = settings or get_settings()
        self._clock = clock
        self.notifier = notifier or LoggingNotificationDispatcher()
        self._transaction = transaction_factory(db)

        self.documents = SqlDocumentStore(db)
        self.audit_log = SqlAuditLogStore(db)
        self.policies = PolicyStore(db, self.audit_log, clock)
        self.scheduler = ScanScheduler(
            self.documents,
            self.policies.snapshot,
            notifier=self.notifier,
            clock=clock,
            max_workers=self.settings.SCAN_WORKERS,
            batch_size=self.settings.SCAN_BATCH_SIZE,
            expiring_soon_days=self.settings.EXPIRING_SOON_DAYS,
        )
        self.executor = ActionExecutor(
            self.documents,
            self.audit_log,
            self.policies.snapshot,
            transaction=self._transaction,
            notifier=self.notifier,
            locks=locks,
            clock=clock,
        )
        self.audit = AuditQueryEngine(self.audit_log, clock)

    # ---- scans and actions ----------------------------------------------

    def run_scan(
        self,
        category: Optional[DocumentCategory] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ScanResult:
        """Run a scan (see ScanScheduler.run_scan)."""
        return self.scheduler.run_scan(category=category, cancel_event=cancel_event)

    def apply_action(self, request: ActionRequest) -> ActionResult:
        """Apply one action with bounded retries on persistence failures."""
        return apply_with_retry(
            self.executor,
            request,
            max_attempts=self.settings.ACTION_MAX_ATTEMPTS,
            backoff_min=self.settings.ACTION_BACKOFF_MIN_SECONDS,
            backoff_max=self.settings.ACTION_BACKOFF_MAX_SECONDS,
        )

    def apply_worklist(
        self,
        result: ScanResult,
        include_deletes: Optional[bool] = None,
        actor_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[ActionResult]:
        """Apply the automatic part of a worklist, one document at a time.

        Archive entries are always applied. Delete entries are applied only
        when ``include_deletes`` (default AUTO_APPLY_DELETES) is set, and
        never when the policy requires manual confirmation. Every action is
        re-checked by the executor, so stale entries are rejected rather
        than forced through.
        """
        if include_deletes is None:
            include_deletes = self.settings.AUTO_APPLY_DELETES
        actor_id = actor_id or self.settings.SYSTEM_ACTOR_ID

        outcomes: List[ActionResult] = []
        for entry in result.worklist:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Worklist application cancelled", extra={"scan_id": result.scan_id})
                break
            if entry.requires_confirmation:
                continue
            if entry.action == ActionType.DELETE and not include_deletes:
                continue
            outcomes.append(self.apply_action(ActionRequest(
                document_id=entry.document.id,
                action=entry.action,
                actor_id=actor_id,
            )))
        return outcomes

    # ---- documents ------------------------------------------------------

    def get_document(self, document_id: str) -> TrackedDocument:
        document = self.documents.get_document(document_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    def set_legal_hold(
        self,
        document_id: str,
        legal_hold: bool,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> TrackedDocument:
        """Place or release a legal hold (audited as an UPDATE).

        Raises:
            NotFoundError: If the document does not exist
        """
        with self.executor.locks.hold(document_id):
            document = self.get_document(document_id)
            with self._transaction():
                updated = self.documents.update_document_state(
                    document.id,
                    document.current_state,
                    expected_version=document.version,
                    legal_hold=legal_hold,
                )
                record_audit_event(
                    self.audit_log,
                    action=AuditAction.UPDATE,
                    table_name=TRACKED_DOCUMENT_TABLE,
                    record_id=document.id,
                    actor_id=actor_id,
                    old_values={"legal_hold": document.legal_hold},
                    new_values={"legal_hold": legal_hold, "reason": reason},
                    risk_score=60 if not legal_hold else 40,
                    timestamp=self._clock(),
                )

        logger.info(
            f"Legal hold {'placed on' if legal_hold else 'released from'} document {document_id}",
            extra={"document_id": document_id, "actor_id": actor_id},
        )
        return updated

    # ---- validity -------------------------------------------------------

    def validity_tracker(self) -> ValidityTracker:
        return ValidityTracker(
            self.policies.validity_table(),
            self._clock,
            self.settings.EXPIRING_SOON_DAYS,
        )

    def assess_validity(
        self,
        status: Optional[ValidityStatus] = None,
        category: Optional[DocumentCategory] = None,
    ) -> Dict[str, Any]:
        """Assess every active document.

        Returns:
            Dict with ``assessments`` (filtered by status), ``summary``
            (counts over all assessed documents) and ``errors``
        """
        tracker = self.validity_tracker()
        assessments: List[ValidityAssessment] = []
        errors: List[ScanIssue] = []

        for document in self.documents.list_active_documents(category):
            try:
                assessments.append(tracker.assess(document))
            except EvaluationError as e:
                logger.warning(
                    f"Cannot assess validity of document {document.id}: {e.message}",
                    extra={"document_id": document.id},
                )
                errors.append(ScanIssue(document_id=document.id, message=e.message))

        return {
            "assessments": tracker.filter_by_status(assessments, status),
            "summary": tracker.summarize(assessments),
            "errors": errors,
        }

    def renew_document(self, document_id: str, actor_id: Optional[str] = None) -> ValidityAssessment:
        """Record that a fresh copy of the document was received today.

        Raises:
            NotFoundError: If the document does not exist
            PreconditionError: If the document has been deleted
        """
        tracker = self.validity_tracker()
        with self.executor.locks.hold(document_id):
            document = self.get_document(document_id)
            if document.current_state == LifecycleState.DELETED:
                raise PreconditionError(
                    PreconditionReason.INVALID_TRANSITION,
                    f"Document {document_id} has been deleted",
                )
            renewed = tracker.mark_renewed(document)
            with self._transaction():
                updated = self.documents.update_document_state(
                    document.id,
                    document.current_state,
                    expected_version=document.version,
                    received_date=renewed.received_date,
                )
                record_audit_event(
                    self.audit_log,
                    action=AuditAction.UPDATE,
                    table_name=TRACKED_DOCUMENT_TABLE,
                    record_id=document.id,
                    actor_id=actor_id,
                    old_values=document_values(document),
                    new_values={**document_values(updated), "event": "renewed"},
                    risk_score=10,
                    timestamp=self._clock(),
                )

        logger.info(f"Document {document_id} renewed", extra={"document_id": document_id, "actor_id": actor_id})
        return tracker.assess(updated)

    def request_renewal(self, document_id: str, actor_id: Optional[str] = None) -> ValidityAssessment:
        """Send a renewal reminder for an expiring or expired document.

        Raises:
            NotFoundError: If the document does not exist
            PreconditionError: If the document is still valid
            EvaluationError: If the document's received date is unusable
        """
        tracker = self.validity_tracker()
        document = self.get_document(document_id)
        assessment = tracker.assess(document)
        if assessment.status == ValidityStatus.VALID:
            raise PreconditionError(
                PreconditionReason.INVALID_TRANSITION,
                f"Document {document_id} is still valid; no renewal needed",
            )

        payload = {
            "status": assessment.status.value,
            "expiration_date": assessment.expiration_date.isoformat() if assessment.expiration_date else None,
            "days_until_expiration": assessment.days_until_expiration,
            "loan_id": document.loan_id,
            "category": document.category_name,
            "requested_by": actor_id,
        }
        with self._transaction():
            record_audit_event(
                self.audit_log,
                action=AuditAction.UPDATE,
                table_name=TRACKED_DOCUMENT_TABLE,
                record_id=document.id,
                actor_id=actor_id,
                new_values={"event": EventKind.RENEWAL_REQUESTED.value, **payload},
                risk_score=10,
                timestamp=self._clock(),
            )

        try:
            self.notifier.emit(LifecycleEvent(
                kind=EventKind.RENEWAL_REQUESTED,
                document_id=document.id,
                occurred_at=self._clock(),
                payload=payload,
            ))
        except Exception:
            logger.error(
                f"Failed to emit renewal_requested for document {document_id}",
                exc_info=True,
                extra={"document_id": document_id},
            )
        return assessment
