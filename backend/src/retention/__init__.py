"""Document retention lifecycle module.

This module provides:
- PolicyStore: retention policy and validity rule administration
- ScanScheduler: periodic / on-demand evaluation of all documents
- ActionExecutor: archive, delete and extend-retention actions
- RetentionService: the composition used by the API, CLI and workers
"""

from .executor import ActionExecutor, apply_with_retry
from .locks import DocumentLockRegistry
from .policy_store import DEFAULT_POLICIES, PolicySnapshot, PolicyStore
from .scheduler import ScanScheduler

# Service and tasks are imported lazily to avoid circular dependencies
# Use: from retention.service import RetentionService
# Use: from retention.tasks import lifecycle_scan_task

__all__ = [
    "ActionExecutor",
    "apply_with_retry",
    "DocumentLockRegistry",
    "DEFAULT_POLICIES",
    "PolicySnapshot",
    "PolicyStore",
    "ScanScheduler",
]
