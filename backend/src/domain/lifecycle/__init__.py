"""Lifecycle domain module - retention state machine and evaluation rules."""

from .errors import (
    LifecycleError,
    ConfigError,
    EvaluationError,
    PreconditionError,
    PreconditionReason,
    PersistenceError,
    NotFoundError,
)
from .models import (
    DAYS_PER_YEAR,
    ActionRequest,
    ActionResult,
    ActionType,
    DocumentCategory,
    EvaluationReason,
    EventKind,
    LifecycleEvaluation,
    LifecycleEvent,
    LifecycleState,
    RetentionPolicy,
    ScanIssue,
    ScanResult,
    TrackedDocument,
    ValidityAssessment,
    ValidityStatus,
    WorklistEntry,
    utc_now,
)
from .states import ALLOWED_TRANSITIONS, can_transition
from .evaluator import LifecycleEvaluator

__all__ = [
    "LifecycleError",
    "ConfigError",
    "EvaluationError",
    "PreconditionError",
    "PreconditionReason",
    "PersistenceError",
    "NotFoundError",
    "DAYS_PER_YEAR",
    "ActionRequest",
    "ActionResult",
    "ActionType",
    "DocumentCategory",
    "EvaluationReason",
    "EventKind",
    "LifecycleEvaluation",
    "LifecycleEvent",
    "LifecycleState",
    "RetentionPolicy",
    "ScanIssue",
    "ScanResult",
    "TrackedDocument",
    "ValidityAssessment",
    "ValidityStatus",
    "WorklistEntry",
    "utc_now",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "LifecycleEvaluator",
]
