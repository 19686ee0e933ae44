"""ActionExecutor - applies archive / delete / extend actions to documents.

Each ``apply`` call:
1. Takes the document's lock
2. Re-reads the document and a fresh policy snapshot
3. Re-checks every precondition against that fresh state
4. Writes the state change and its audit record in one transaction

Success is reported only after that transaction commits. A rejected action
leaves the document untouched and writes one audit record describing the
rejection.
"""

import logging
from contextlib import nullcontext
from datetime import timedelta
from typing import Any, Callable, ContextManager, Dict, Optional, Tuple

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from audit.service import record_audit_event
from domain.audit.models import AuditAction
from domain.lifecycle.errors import (
    LifecycleError,
    PersistenceError,
    PreconditionError,
    PreconditionReason,
)
from domain.lifecycle.evaluator import delete_due_date, require_category, retention_elapsed
from domain.lifecycle.models import (
    ActionRequest,
    ActionResult,
    ActionType,
    Clock,
    EventKind,
    LifecycleEvent,
    LifecycleState,
    TrackedDocument,
    utc_now,
)
from domain.lifecycle.ports import (
    AuditLogStorePort,
    DocumentStorePort,
    NotificationDispatcherPort,
)
from domain.lifecycle.states import ACTION_TRANSITIONS, can_transition
from observability.metrics import record_action
from .locks import DocumentLockRegistry, default_lock_registry
from .policy_store import PolicySnapshot

logger = logging.getLogger(__name__)

TRACKED_DOCUMENT_TABLE = "tracked_document"

# Review priority of the audit record per action
RISK_SCORES: Dict[ActionType, int] = {
    ActionType.ARCHIVE: 20,
    ActionType.EXTEND_RETENTION: 30,
    ActionType.DELETE: 80,
}

AUDIT_ACTIONS: Dict[ActionType, AuditAction] = {
    ActionType.ARCHIVE: AuditAction.UPDATE,
    ActionType.EXTEND_RETENTION: AuditAction.UPDATE,
    ActionType.DELETE: AuditAction.DELETE,
}


def document_values(document: TrackedDocument) -> Dict[str, Any]:
    """Lifecycle-relevant fields of a document, as stored in audit records."""
    return {
        "current_state": document.current_state.value,
        "legal_hold": document.legal_hold,
        "retention_extension_days": document.retention_extension_days,
        "received_date": str(document.received_date) if document.received_date else None,
    }


class ActionExecutor:
    """Applies lifecycle actions one document at a time."""

    def __init__(
        self,
        documents: DocumentStorePort,
        audit_log: AuditLogStorePort,
        load_snapshot: Callable[[], PolicySnapshot],
        transaction: Optional[Callable[[], ContextManager]] = None,
        notifier: Optional[NotificationDispatcherPort] = None,
        locks: Optional[DocumentLockRegistry] = None,
        clock: Clock = utc_now,
    ):
        self.documents = documents
        self.audit_log = audit_log
        self.load_snapshot = load_snapshot
        self.transaction = transaction or nullcontext
        self.notifier = notifier
        self.locks = locks or default_lock_registry
        self._clock = clock

    def apply(self, request: ActionRequest) -> ActionResult:
        """Apply one action.

        Never raises for expected failures: the result carries either
        success or a typed error (PreconditionError, PersistenceError,
        ConfigError, EvaluationError).
        """
        with self.locks.hold(request.document_id):
            document = None
            try:
                document = self.documents.get_document(request.document_id)
                if document is None:
                    raise PreconditionError(
                        PreconditionReason.DOCUMENT_NOT_FOUND,
                        f"Document {request.document_id} not found",
                    )

                new_state, changes = self.check_preconditions(request, document)

                with self.transaction():
                    updated = self.documents.update_document_state(
                        document.id,
                        new_state,
                        expected_version=document.version,
                        **changes,
                    )
                    record = record_audit_event(
                        self.audit_log,
                        action=AUDIT_ACTIONS[request.action],
                        table_name=TRACKED_DOCUMENT_TABLE,
                        record_id=document.id,
                        actor_id=request.actor_id,
                        old_values=document_values(document),
                        new_values={
                            **document_values(updated),
                            "action": request.action.value,
                            "outcome": "applied",
                        },
                        risk_score=RISK_SCORES[request.action],
                        timestamp=self._clock(),
                    )

            except PreconditionError as e:
                record_action(request.action.value, "rejected")
                logger.info(
                    f"{request.action.value} rejected for document {request.document_id}: {e.reason.value}",
                    extra={
                        "document_id": request.document_id,
                        "action": request.action.value,
                        "reason": e.reason.value,
                        "actor_id": request.actor_id,
                    },
                )
                audit_id = self.record_failure(request, e, document)
                return ActionResult(
                    success=False,
                    document_id=request.document_id,
                    action=request.action,
                    from_state=document.current_state if document else None,
                    to_state=document.current_state if document else None,
                    error=e,
                    audit_record_id=audit_id,
                )

            except LifecycleError as e:
                # PersistenceError is audited by apply_with_retry once retries run out
                record_action(request.action.value, "failed")
                logger.warning(
                    f"{request.action.value} failed for document {request.document_id}: {e}",
                    extra={"document_id": request.document_id, "action": request.action.value},
                )
                audit_id = None
                if not isinstance(e, PersistenceError):
                    audit_id = self.record_failure(request, e, document)
                return ActionResult(
                    success=False,
                    document_id=request.document_id,
                    action=request.action,
                    from_state=document.current_state if document else None,
                    to_state=document.current_state if document else None,
                    error=e,
                    audit_record_id=audit_id,
                )

        record_action(request.action.value, "success")
        logger.info(
            f"{request.action.value} applied to document {document.id}: "
            f"{document.current_state.value} -> {updated.current_state.value}",
            extra={
                "document_id": document.id,
                "action": request.action.value,
                "actor_id": request.actor_id,
            },
        )
        self._emit_applied(request, document, updated)

        return ActionResult(
            success=True,
            document_id=document.id,
            action=request.action,
            from_state=document.current_state,
            to_state=updated.current_state,
            audit_record_id=record.id,
        )

    def check_preconditions(
        self,
        request: ActionRequest,
        document: TrackedDocument,
    ) -> Tuple[LifecycleState, Dict[str, Any]]:
        """Validate an action against the document's current state.

        Returns:
            (new state, extra field changes)

        Raises:
            PreconditionError: If the action may not be applied
            ConfigError: If the policy configuration is unusable
        """
        if request.action == ActionType.EXTEND_RETENTION:
            if document.current_state == LifecycleState.DELETED:
                raise PreconditionError(
                    PreconditionReason.INVALID_TRANSITION,
                    "Retention of a deleted document cannot be extended",
                )
            return document.current_state, {
                "retention_extension_days": document.retention_extension_days + request.days,
            }

        category = require_category(document)
        snapshot = self.load_snapshot()
        policy = snapshot.active_for(category)
        sources, target = ACTION_TRANSITIONS[request.action]

        if request.action == ActionType.ARCHIVE:
            self._require_state(document, sources, target)
            if policy is None:
                raise PreconditionError(
                    PreconditionReason.POLICY_INACTIVE,
                    f"No active retention policy for {category.value}",
                )
            if document.legal_hold and policy.legal_hold_override:
                raise PreconditionError(
                    PreconditionReason.HOLD_ACTIVE,
                    f"Document {document.id} is under legal hold",
                )
            return target, {}

        # Delete
        if policy is None:
            raise PreconditionError(
                PreconditionReason.POLICY_INACTIVE,
                f"No active retention policy for {category.value}",
            )
        today = self._clock().date()
        if not retention_elapsed(document, policy, today):
            raise PreconditionError(
                PreconditionReason.RETENTION_NOT_ELAPSED,
                f"Retention runs until {delete_due_date(document, policy).isoformat()}",
            )
        if document.legal_hold:
            raise PreconditionError(
                PreconditionReason.HOLD_ACTIVE,
                f"Document {document.id} is under legal hold",
            )
        self._require_state(document, sources, target)
        if not policy.auto_delete and not request.confirmed:
            raise PreconditionError(
                PreconditionReason.CONFIRMATION_REQUIRED,
                f"Policy {policy.id} requires manual confirmation before deletion",
            )
        return target, {}

    @staticmethod
    def _require_state(document: TrackedDocument, sources: tuple, target: LifecycleState) -> None:
        if document.current_state not in sources or not can_transition(document.current_state, target):
            raise PreconditionError(
                PreconditionReason.INVALID_TRANSITION,
                f"Cannot move document from {document.current_state.value} to {target.value}",
            )

    def record_failure(
        self,
        request: ActionRequest,
        error: LifecycleError,
        document: Optional[TrackedDocument] = None,
    ) -> Optional[str]:
        """Write the audit record of a failed action; returns its id.

        The audit write is best-effort: if it fails too, the failure is
        logged and None is returned.
        """
        reason = error.reason.value if isinstance(error, PreconditionError) else type(error).__name__
        try:
            with self.transaction():
                record = record_audit_event(
                    self.audit_log,
                    action=AUDIT_ACTIONS[request.action],
                    table_name=TRACKED_DOCUMENT_TABLE,
                    record_id=request.document_id,
                    actor_id=request.actor_id,
                    old_values=document_values(document) if document else None,
                    new_values={
                        "action": request.action.value,
                        "outcome": "rejected",
                        "reason": reason,
                        "message": str(error),
                    },
                    risk_score=RISK_SCORES[request.action],
                    timestamp=self._clock(),
                )
            return record.id
        except PersistenceError:
            logger.error(
                f"Could not audit failed {request.action.value} of document {request.document_id}",
                exc_info=True,
                extra={"document_id": request.document_id, "action": request.action.value},
            )
            return None

    def _emit_applied(self, request: ActionRequest, before: TrackedDocument, after: TrackedDocument) -> None:
        if self.notifier is None:
            return
        event = LifecycleEvent(
            kind=EventKind.ACTION_APPLIED,
            document_id=after.id,
            occurred_at=self._clock(),
            payload={
                "action": request.action.value,
                "from_state": before.current_state.value,
                "to_state": after.current_state.value,
                "actor_id": request.actor_id,
            },
        )
        try:
            self.notifier.emit(event)
        except Exception:
            logger.error(
                f"Failed to emit action_applied for document {after.id}",
                exc_info=True,
                extra={"document_id": after.id},
            )


def _is_persistence_failure(result: ActionResult) -> bool:
    return isinstance(result.error, PersistenceError)


def apply_with_retry(
    executor: ActionExecutor,
    request: ActionRequest,
    max_attempts: int = 3,
    backoff_min: float = 0.5,
    backoff_max: float = 8.0,
) -> ActionResult:
    """Apply an action, retrying persistence failures with exponential backoff.

    Precondition failures are returned immediately. When every attempt hits
    a PersistenceError, the last failed result is returned (the document
    keeps its last committed state) and the failure is audited once.
    """

    def _log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            f"Retrying {request.action.value} of document {request.document_id} "
            f"after persistence failure (attempt {retry_state.attempt_number})",
            extra={
                "document_id": request.document_id,
                "action": request.action.value,
                "attempt": retry_state.attempt_number,
            },
        )

    def _give_up(retry_state: RetryCallState) -> ActionResult:
        return retry_state.outcome.result()

    retrying = Retrying(
        retry=retry_if_result(_is_persistence_failure),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff_min, min=backoff_min, max=backoff_max),
        before_sleep=_log_retry,
        retry_error_callback=_give_up,
    )
    result = retrying(executor.apply, request)

    if _is_persistence_failure(result):
        logger.error(
            f"{request.action.value} of document {request.document_id} failed after {max_attempts} attempts",
            extra={"document_id": request.document_id, "action": request.action.value},
        )
        audit_id = executor.record_failure(request, result.error)
        return ActionResult(
            success=False,
            document_id=result.document_id,
            action=result.action,
            from_state=result.from_state,
            to_state=result.to_state,
            error=result.error,
            audit_record_id=audit_id,
        )
    return result
