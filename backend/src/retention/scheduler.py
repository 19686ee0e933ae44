"""ScanScheduler - re-evaluates the document population into a worklist.

A scan:
1. Takes a configuration snapshot (ConfigError aborts before any document
   is read)
2. Lists every non-deleted document from the document store
3. Evaluates batches of documents on a bounded thread pool
4. Merges the results into a deterministic worklist, an unpoliced report and
   an error list

Scans never change document state. Applying worklist entries is the
ActionExecutor's job.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional

from domain.lifecycle.errors import ConfigError, EvaluationError
from domain.lifecycle.evaluator import LifecycleEvaluator, require_category
from domain.lifecycle.models import (
    Clock,
    DocumentCategory,
    EventKind,
    LifecycleEvent,
    ScanIssue,
    ScanResult,
    TrackedDocument,
    WorklistEntry,
    utc_now,
)
from domain.lifecycle.ports import DocumentStorePort, NotificationDispatcherPort
from domain.validity.tracker import EXPIRING_SOON_DAYS, ValidityTracker
from observability.correlation import correlation_scope
from observability.metrics import record_scan, scans_total
from .policy_store import PolicySnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4
DEFAULT_BATCH_SIZE = 500


class _BatchOutcome:
    """What one batch contributed to the scan."""

    def __init__(self):
        self.worklist: List[WorklistEntry] = []
        self.unpoliced: List[TrackedDocument] = []
        self.errors: List[ScanIssue] = []
        self.validity: list = []
        self.evaluated = 0


class ScanScheduler:
    """Runs lifecycle scans over the full document set.

    Evaluation is pure, so batches run concurrently on ``max_workers``
    threads. The document store is only read from the calling thread.
    """

    def __init__(
        self,
        documents: DocumentStorePort,
        load_snapshot: Callable[[], PolicySnapshot],
        notifier: Optional[NotificationDispatcherPort] = None,
        evaluator: Optional[LifecycleEvaluator] = None,
        clock: Clock = utc_now,
        max_workers: int = DEFAULT_MAX_WORKERS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        expiring_soon_days: int = EXPIRING_SOON_DAYS,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self.documents = documents
        self.load_snapshot = load_snapshot
        self.notifier = notifier
        self.evaluator = evaluator or LifecycleEvaluator(clock)
        self._clock = clock
        self.max_workers = max_workers
        self.batch_size = batch_size
        self.expiring_soon_days = expiring_soon_days

    def run_scan(
        self,
        category: Optional[DocumentCategory] = None,
        cancel_event: Optional[threading.Event] = None,
        scan_id: Optional[str] = None,
    ) -> ScanResult:
        """Evaluate every active document and build the worklist.

        Args:
            category: Restrict the scan to one category
            cancel_event: Set it to stop the scan; documents not yet fully
                evaluated are left out of the result
            scan_id: Id for the run (generated if omitted)

        Returns:
            ScanResult with the sorted worklist, unpoliced documents and
            per-document errors

        Raises:
            ConfigError: If the configuration snapshot is unusable
            PersistenceError: If the document store cannot be listed
        """
        scan_id = scan_id or str(uuid.uuid4())
        cancel_event = cancel_event or threading.Event()

        with correlation_scope(scan_id):
            started = time.monotonic()
            started_at = self._clock()
            today = started_at.date()

            try:
                snapshot = self.load_snapshot()
            except ConfigError:
                scans_total.labels(outcome="config_error").inc()
                logger.error("Scan aborted: configuration is invalid", exc_info=True, extra={"scan_id": scan_id})
                raise

            result = ScanResult(scan_id=scan_id, started_at=started_at, as_of=today)

            logger.info(
                f"Scan {scan_id} started",
                extra={"scan_id": scan_id, "category": category.value if category else None},
            )

            documents = self.documents.list_active_documents(category)
            tracker = ValidityTracker(snapshot.validity_rules, self._clock, self.expiring_soon_days)
            batches = [
                documents[i:i + self.batch_size]
                for i in range(0, len(documents), self.batch_size)
            ]

            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [
                    pool.submit(self._evaluate_batch, batch, snapshot, tracker, today, cancel_event, scan_id)
                    for batch in batches
                ]
                for future in as_completed(futures):
                    if future.cancelled():
                        continue
                    outcome = future.result()
                    result.worklist.extend(outcome.worklist)
                    result.unpoliced.extend(outcome.unpoliced)
                    result.errors.extend(outcome.errors)
                    result.validity.extend(outcome.validity)
                    result.documents_scanned += outcome.evaluated
                    if cancel_event.is_set():
                        pool.shutdown(wait=True, cancel_futures=True)

            # Batches finish in any order; sort for a deterministic result
            result.worklist.sort(key=lambda entry: entry.sort_key)
            result.unpoliced.sort(key=lambda document: document.id)
            result.errors.sort(key=lambda issue: issue.document_id or "")
            result.validity.sort(key=lambda assessment: assessment.document.id)
            result.cancelled = cancel_event.is_set() and result.documents_scanned < len(documents)
            result.completed_at = self._clock()

            self._emit_due_events(result)

            if result.cancelled:
                outcome_label = "cancelled"
            elif result.has_errors:
                outcome_label = "partial"
            else:
                outcome_label = "complete"
            record_scan(result, time.monotonic() - started, outcome_label)

            logger.info(
                f"Scan {scan_id} finished: {len(result.worklist)} worklist entries, "
                f"{len(result.unpoliced)} unpoliced, {len(result.errors)} errors",
                extra={
                    "scan_id": scan_id,
                    "worklist_size": len(result.worklist),
                    "unpoliced_count": len(result.unpoliced),
                    "error_count": len(result.errors),
                },
            )
            return result

    def _evaluate_batch(
        self,
        batch: List[TrackedDocument],
        snapshot: PolicySnapshot,
        tracker: ValidityTracker,
        today,
        cancel_event: threading.Event,
        scan_id: str,
    ) -> _BatchOutcome:
        outcome = _BatchOutcome()

        # Worker threads do not inherit the caller's context
        with correlation_scope(scan_id):
            for document in batch:
                if cancel_event.is_set():
                    break
                try:
                    self._evaluate_document(document, snapshot, tracker, today, outcome)
                except EvaluationError as e:
                    logger.warning(
                        f"Document {document.id} excluded from scan: {e.message}",
                        extra={"scan_id": scan_id, "document_id": document.id},
                    )
                    outcome.errors.append(ScanIssue(document_id=document.id, message=e.message))
                except Exception as e:
                    logger.error(
                        f"Unexpected error evaluating document {document.id}: {e}",
                        exc_info=True,
                        extra={"scan_id": scan_id, "document_id": document.id},
                    )
                    outcome.errors.append(ScanIssue(document_id=document.id, message=str(e)))
                outcome.evaluated += 1

        return outcome

    def _evaluate_document(
        self,
        document: TrackedDocument,
        snapshot: PolicySnapshot,
        tracker: ValidityTracker,
        today,
        outcome: _BatchOutcome,
    ) -> None:
        # Both state machines are computed before anything is recorded, so a
        # failure leaves no partial trace of the document
        policy = snapshot.active_for(require_category(document))
        evaluation = self.evaluator.evaluate(document, policy, today)
        assessment = tracker.assess(document, today)

        outcome.validity.append(assessment)
        if policy is None:
            outcome.unpoliced.append(document)
            return

        if evaluation.due_action is None:
            return

        outcome.worklist.append(WorklistEntry(
            document=document,
            from_state=evaluation.current_state,
            to_state=evaluation.target_state,
            due_date=evaluation.next_action_date,
            action=evaluation.due_action,
            reason=evaluation.reason,
            policy_id=policy.id,
            requires_confirmation=evaluation.requires_confirmation,
            validity_status=assessment.status,
        ))

    def _emit_due_events(self, result: ScanResult) -> None:
        if self.notifier is None:
            return
        for entry in result.worklist:
            event = LifecycleEvent(
                kind=EventKind.ACTION_DUE,
                document_id=entry.document.id,
                occurred_at=result.completed_at,
                payload={
                    "scan_id": result.scan_id,
                    "action": entry.action.value,
                    "from_state": entry.from_state.value,
                    "to_state": entry.to_state.value,
                    "due_date": entry.due_date.isoformat(),
                    "requires_confirmation": entry.requires_confirmation,
                },
            )
            try:
                self.notifier.emit(event)
            except Exception:
                logger.error(
                    f"Failed to emit action_due for document {entry.document.id}",
                    exc_info=True,
                    extra={"scan_id": result.scan_id, "document_id": entry.document.id},
                )
