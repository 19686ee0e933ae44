"""LifecycleEvaluator - decides a document's lifecycle state under its policy.

``evaluate`` is a pure function of (document, policy, as_of date). It never
touches a store, so a scan may run it from many worker threads at once.
"""

from datetime import date, datetime, timedelta
from typing import Optional
import logging

from .errors import EvaluationError
from .models import (
    ActionType,
    Clock,
    DocumentCategory,
    EvaluationReason,
    LifecycleEvaluation,
    LifecycleState,
    RetentionPolicy,
    TrackedDocument,
    utc_now,
)


logger = logging.getLogger(__name__)


def coerce_received_date(document: TrackedDocument) -> date:
    """Return the document's received date as a ``date``.

    Missing or unparseable dates are an explicit evaluation error; the
    engine never substitutes a made-up value.

    Raises:
        EvaluationError: If the received date is missing or malformed
    """
    value = document.received_date
    if value is None:
        raise EvaluationError(document.id, "Document has no received date")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise EvaluationError(document.id, f"Malformed received date: {value!r}")
    raise EvaluationError(document.id, f"Unsupported received date type: {type(value).__name__}")


def require_category(document: TrackedDocument) -> DocumentCategory:
    """Return the document's category, rejecting values no category matches.

    Raises:
        EvaluationError: If the stored category is unknown
    """
    if isinstance(document.category, DocumentCategory):
        return document.category
    raise EvaluationError(document.id, f"Unknown document category: {document.category!r}")


def age_in_days(document: TrackedDocument, as_of: date) -> int:
    """Days elapsed since the document was received.

    Raises:
        EvaluationError: If the received date is unusable or in the future
    """
    received = coerce_received_date(document)
    if received > as_of:
        raise EvaluationError(
            document.id,
            f"Received date {received.isoformat()} is after {as_of.isoformat()}",
        )
    return (as_of - received).days


def archive_due_date(document: TrackedDocument, policy: RetentionPolicy) -> date:
    offset = policy.archive_after_days + document.retention_extension_days
    return coerce_received_date(document) + timedelta(days=offset)


def delete_due_date(document: TrackedDocument, policy: RetentionPolicy) -> date:
    offset = policy.retention_days + document.retention_extension_days
    return coerce_received_date(document) + timedelta(days=offset)


def retention_elapsed(document: TrackedDocument, policy: RetentionPolicy, as_of: date) -> bool:
    return as_of >= delete_due_date(document, policy)


class LifecycleEvaluator:
    """Computes (state, next action date, reason) for a document.

    Rules, in order:
    1. A legal hold under a policy with ``legal_hold_override`` freezes the
       document in place.
    2. Active documents past the archive threshold become ArchivePending.
       Deletion never fires before archival has been recorded, even if the
       policy's archive threshold is larger than its retention period.
    3. Archived documents past the retention period become DeletePending when
       the policy auto-deletes, otherwise they stay Archived awaiting a manual
       deletion decision.

    Retention extensions push both thresholds forward.
    """

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    def evaluate(
        self,
        document: TrackedDocument,
        policy: Optional[RetentionPolicy],
        as_of: Optional[date] = None,
    ) -> LifecycleEvaluation:
        """Evaluate one document.

        Args:
            document: Document to evaluate
            policy: Active policy for the document's category, or None
            as_of: Evaluation date (defaults to today, UTC)

        Returns:
            LifecycleEvaluation with the target state and the due action, if any

        Raises:
            EvaluationError: If the document's data cannot be evaluated
        """
        require_category(document)
        today = as_of or self._clock().date()
        state = document.current_state

        if policy is None:
            return self._result(document, state, None, EvaluationReason.UNPOLICED)

        if document.legal_hold and policy.legal_hold_override:
            return self._result(document, state, None, EvaluationReason.HOLD)

        if state == LifecycleState.DELETED:
            return self._result(document, state, None, EvaluationReason.DELETED)

        age = age_in_days(document, today)

        if state in (LifecycleState.ACTIVE, LifecycleState.ARCHIVE_PENDING):
            archive_on = archive_due_date(document, policy)
            if age >= policy.archive_after_days + document.retention_extension_days:
                reason = (
                    EvaluationReason.ARCHIVE_DUE
                    if state == LifecycleState.ACTIVE
                    else EvaluationReason.AWAITING_ARCHIVE
                )
                return self._result(
                    document, LifecycleState.ARCHIVE_PENDING, archive_on, reason,
                    due_action=ActionType.ARCHIVE,
                )
            return self._result(document, state, archive_on, EvaluationReason.NOT_DUE)

        # Archived or DeletePending
        delete_on = delete_due_date(document, policy)
        if age < policy.retention_days + document.retention_extension_days:
            return self._result(document, state, delete_on, EvaluationReason.RETENTION_RUNNING)

        if document.legal_hold:
            # A hold always wins over deletion, override flag or not
            return self._result(document, state, None, EvaluationReason.HOLD)

        if policy.auto_delete:
            reason = (
                EvaluationReason.DELETE_DUE
                if state == LifecycleState.ARCHIVED
                else EvaluationReason.AWAITING_DELETE
            )
            return self._result(
                document, LifecycleState.DELETE_PENDING, delete_on, reason,
                due_action=ActionType.DELETE,
            )

        return self._result(
            document, state, delete_on, EvaluationReason.MANUAL_DELETE_REVIEW,
            due_action=ActionType.DELETE,
            requires_confirmation=True,
        )

    @staticmethod
    def _result(
        document: TrackedDocument,
        target: LifecycleState,
        next_action_date: Optional[date],
        reason: EvaluationReason,
        due_action: Optional[ActionType] = None,
        requires_confirmation: bool = False,
    ) -> LifecycleEvaluation:
        return LifecycleEvaluation(
            document_id=document.id,
            current_state=document.current_state,
            target_state=target,
            next_action_date=next_action_date,
            reason=reason,
            due_action=due_action,
            requires_confirmation=requires_confirmation,
        )
