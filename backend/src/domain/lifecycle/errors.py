"""Lifecycle error taxonomy.

- ConfigError: malformed or contradictory configuration, fatal for a scan
- EvaluationError: a single document's data is unusable, recovered by the scan
- PreconditionError: an action was rejected for a typed reason
- PersistenceError: a store write failed, retried by the caller
- NotFoundError: an unknown policy or document id
"""

from enum import Enum
from typing import Optional


class LifecycleError(Exception):
    """Base class for all lifecycle engine errors."""


class ConfigError(LifecycleError):
    """Retention policy or validity rule configuration is unusable."""


class EvaluationError(LifecycleError):
    """A document could not be evaluated."""

    def __init__(self, document_id: Optional[str], message: str):
        super().__init__(message)
        self.document_id = document_id
        self.message = message


class PreconditionReason(str, Enum):
    HOLD_ACTIVE = "HoldActive"
    RETENTION_NOT_ELAPSED = "RetentionNotElapsed"
    POLICY_INACTIVE = "PolicyInactive"
    INVALID_TRANSITION = "InvalidTransition"
    CONFIRMATION_REQUIRED = "ConfirmationRequired"
    DOCUMENT_NOT_FOUND = "DocumentNotFound"


class PreconditionError(LifecycleError):
    """An action's precondition failed; the document was left untouched."""

    def __init__(self, reason: PreconditionReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message

    def __repr__(self) -> str:
        return f"PreconditionError({self.reason.value}: {self.message})"


class PersistenceError(LifecycleError):
    """A document store or audit store write failed."""


class NotFoundError(LifecycleError):
    """A policy or document id does not exist."""
