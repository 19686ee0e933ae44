"""LifecycleState transition rules.

State flow:
Active -> ArchivePending -> Archived -> DeletePending -> Deleted

Archive may skip ArchivePending and Delete may skip DeletePending; nothing
moves backwards and Deleted is terminal.
"""

from typing import Dict, List

from .models import ActionType, LifecycleState


ALLOWED_TRANSITIONS: Dict[LifecycleState, List[LifecycleState]] = {
    LifecycleState.ACTIVE: [LifecycleState.ARCHIVE_PENDING, LifecycleState.ARCHIVED],
    LifecycleState.ARCHIVE_PENDING: [LifecycleState.ARCHIVED],
    LifecycleState.ARCHIVED: [LifecycleState.DELETE_PENDING, LifecycleState.DELETED],
    LifecycleState.DELETE_PENDING: [LifecycleState.DELETED],
    LifecycleState.DELETED: [],  # Terminal
}

# Source states each action accepts, and the state it produces
ACTION_TRANSITIONS: Dict[ActionType, tuple] = {
    ActionType.ARCHIVE: (
        (LifecycleState.ACTIVE, LifecycleState.ARCHIVE_PENDING),
        LifecycleState.ARCHIVED,
    ),
    ActionType.DELETE: (
        (LifecycleState.ARCHIVED, LifecycleState.DELETE_PENDING),
        LifecycleState.DELETED,
    ),
}


def can_transition(from_state: LifecycleState, to_state: LifecycleState) -> bool:
    """Validate if a state transition is allowed.

    Example:
        >>> can_transition(LifecycleState.ACTIVE, LifecycleState.ARCHIVE_PENDING)
        True
        >>> can_transition(LifecycleState.DELETED, LifecycleState.ACTIVE)
        False
    """
    return to_state in ALLOWED_TRANSITIONS.get(from_state, [])
