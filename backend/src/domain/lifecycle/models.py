"""Lifecycle domain models.

Plain dataclasses and enums shared by the evaluator, the scan scheduler and
the action executor. These are domain objects, not database rows; the
SQLAlchemy models in ``models/`` are mapped onto them by the repositories.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from .errors import ConfigError, PreconditionError, LifecycleError


DAYS_PER_YEAR = 365

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock used by every component."""
    return datetime.now(timezone.utc)


class DocumentCategory(str, Enum):
    """Fixed set of document types a policy or validity rule can target."""
    SBA_FORMS = "sba_forms"
    TAX_RETURNS = "tax_returns"
    BANK_STATEMENTS = "bank_statements"
    IDENTIFICATION = "identification"
    CORRESPONDENCE = "correspondence"
    CREDIT_REPORT = "credit_report"
    PAY_STUB = "pay_stub"
    APPRAISAL = "appraisal"
    INSURANCE = "insurance"
    TITLE = "title"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "str | DocumentCategory") -> "DocumentCategory":
        """Parse a category, accepting the singular spellings used by uploads.

        Raises:
            ValueError: If the value names no known category
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        normalized = _CATEGORY_ALIASES.get(normalized, normalized)
        return cls(normalized)


_CATEGORY_ALIASES = {
    "bank_statement": "bank_statements",
    "tax_return": "tax_returns",
    "sba_form": "sba_forms",
    "id": "identification",
    "id_document": "identification",
}


class LifecycleState(str, Enum):
    """Document lifecycle states.

    State flow:
    Active -> ArchivePending -> Archived -> DeletePending -> Deleted
    Legal hold is an orthogonal flag on the document, not a state.
    """
    ACTIVE = "Active"
    ARCHIVE_PENDING = "ArchivePending"
    ARCHIVED = "Archived"
    DELETE_PENDING = "DeletePending"
    DELETED = "Deleted"


class ValidityStatus(str, Enum):
    VALID = "Valid"
    EXPIRING_SOON = "ExpiringSoon"
    EXPIRED = "Expired"


class ActionType(str, Enum):
    """Actions an operator (or the nightly job) can apply to a document."""
    ARCHIVE = "archive"
    DELETE = "delete"
    EXTEND_RETENTION = "extend"


class EvaluationReason(str, Enum):
    """Why an evaluation produced the state it did."""
    HOLD = "hold"
    UNPOLICED = "unpoliced"
    NOT_DUE = "not_due"
    ARCHIVE_DUE = "archive_due"
    AWAITING_ARCHIVE = "awaiting_archive"
    RETENTION_RUNNING = "retention_running"
    DELETE_DUE = "delete_due"
    AWAITING_DELETE = "awaiting_delete"
    MANUAL_DELETE_REVIEW = "manual_delete_review"
    DELETED = "deleted"


class EventKind(str, Enum):
    ACTION_DUE = "action_due"
    ACTION_APPLIED = "action_applied"
    RENEWAL_REQUESTED = "renewal_requested"


@dataclass(frozen=True)
class RetentionPolicy:
    """Retention rules for one document category."""
    id: str
    name: str
    document_category: DocumentCategory
    retention_years: int
    archive_after_days: int
    auto_delete: bool
    legal_hold_override: bool
    is_active: bool = True

    @property
    def retention_days(self) -> int:
        return self.retention_years * DAYS_PER_YEAR

    def validate(self) -> None:
        """Reject negative periods and archival scheduled past the retention period.

        Raises:
            ConfigError: If the policy is malformed or contradictory
        """
        if self.retention_years < 0:
            raise ConfigError(f"Policy {self.id}: retention_years must be >= 0")
        if self.archive_after_days < 0:
            raise ConfigError(f"Policy {self.id}: archive_after_days must be >= 0")
        if self.archive_after_days > self.retention_days:
            raise ConfigError(
                f"Policy {self.id}: archive_after_days ({self.archive_after_days}) "
                f"exceeds retention period ({self.retention_days} days)"
            )


@dataclass(frozen=True)
class TrackedDocument:
    """A stored document as seen by the lifecycle engine.

    ``received_date`` is typed as a date but external stores may hand over
    strings or nothing at all; the evaluator rejects those explicitly. The
    same goes for ``category``: a value no DocumentCategory matches is kept
    as the raw string so the evaluator can report it.
    """
    id: str
    name: str
    category: "DocumentCategory | str"
    loan_id: Optional[str]
    received_date: Optional[date]
    current_state: LifecycleState = LifecycleState.ACTIVE
    legal_hold: bool = False
    retention_extension_days: int = 0
    version: int = 1

    @property
    def category_name(self) -> str:
        """Category as stored, whether or not it is a known category."""
        if isinstance(self.category, DocumentCategory):
            return self.category.value
        return str(self.category)


@dataclass(frozen=True)
class LifecycleEvaluation:
    """Result of evaluating one document against its policy."""
    document_id: str
    current_state: LifecycleState
    target_state: LifecycleState
    next_action_date: Optional[date]
    reason: EvaluationReason
    due_action: Optional[ActionType] = None
    requires_confirmation: bool = False

    @property
    def state(self) -> LifecycleState:
        return self.target_state

    @property
    def is_transition(self) -> bool:
        return self.target_state != self.current_state


@dataclass(frozen=True)
class ValidityAssessment:
    """Derived validity of a document for underwriting use (never persisted)."""
    document: TrackedDocument
    days_since_received: int
    expiration_date: Optional[date]
    days_until_expiration: Optional[int]
    status: ValidityStatus


@dataclass(frozen=True)
class WorklistEntry:
    """One pending lifecycle action produced by a scan."""
    document: TrackedDocument
    from_state: LifecycleState
    to_state: LifecycleState
    due_date: date
    action: ActionType
    reason: EvaluationReason
    policy_id: str
    requires_confirmation: bool = False
    validity_status: Optional[ValidityStatus] = None

    @property
    def sort_key(self) -> tuple:
        return (self.due_date, self.document.id)


@dataclass(frozen=True)
class ScanIssue:
    """A document that could not be evaluated during a scan."""
    document_id: str
    message: str


@dataclass
class ScanResult:
    """Everything a scan run produced."""
    scan_id: str
    started_at: datetime
    as_of: date
    worklist: list[WorklistEntry] = field(default_factory=list)
    unpoliced: list[TrackedDocument] = field(default_factory=list)
    errors: list[ScanIssue] = field(default_factory=list)
    validity: list[ValidityAssessment] = field(default_factory=list)
    documents_scanned: int = 0
    cancelled: bool = False
    completed_at: Optional[datetime] = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def is_partial(self) -> bool:
        return self.has_errors or self.cancelled

    @property
    def pending_archive(self) -> int:
        return sum(1 for entry in self.worklist if entry.action == ActionType.ARCHIVE)

    @property
    def pending_delete(self) -> int:
        return sum(
            1 for entry in self.worklist
            if entry.action == ActionType.DELETE and not entry.requires_confirmation
        )

    @property
    def manual_review(self) -> int:
        return sum(1 for entry in self.worklist if entry.requires_confirmation)


@dataclass(frozen=True)
class ActionRequest:
    """A requested action against one document."""
    document_id: str
    action: ActionType
    actor_id: Optional[str] = None
    days: Optional[int] = None
    confirmed: bool = False

    def __post_init__(self):
        if self.action == ActionType.EXTEND_RETENTION:
            if self.days is None or self.days < 1:
                raise ValueError("ExtendRetention requires days >= 1")


@dataclass(frozen=True)
class ActionResult:
    """Outcome of ``ActionExecutor.apply``: success, or a typed error."""
    success: bool
    document_id: str
    action: ActionType
    from_state: Optional[LifecycleState] = None
    to_state: Optional[LifecycleState] = None
    error: Optional[LifecycleError] = None
    audit_record_id: Optional[str] = None

    @property
    def error_reason(self) -> Optional[str]:
        if isinstance(self.error, PreconditionError):
            return self.error.reason.value
        if self.error is not None:
            return type(self.error).__name__
        return None


@dataclass(frozen=True)
class LifecycleEvent:
    """Event handed to the notification dispatcher."""
    kind: EventKind
    document_id: str
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)
