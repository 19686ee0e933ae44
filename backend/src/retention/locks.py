"""Per-document locks serializing lifecycle actions within one process.

Cross-process races (API worker vs. Celery worker) are caught by the
``version`` check in the document store; this registry keeps two threads
of the same process from interleaving on one document in the first place.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Generator, List


class _DocumentLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class DocumentLockRegistry:
    """Hands out one re-entrant lock per document id.

    A document's lock lives only while some thread holds or waits for it,
    so the registry stays as small as the set of documents in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, _DocumentLock] = {}

    @contextmanager
    def hold(self, document_id: str) -> Generator[None, None, None]:
        """Hold the document's lock for the duration of the block."""
        with self._guard:
            entry = self._locks.get(document_id)
            if entry is None:
                entry = self._locks[document_id] = _DocumentLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[document_id]

    def held_ids(self) -> List[str]:
        with self._guard:
            return sorted(self._locks)

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every executor in the process
default_lock_registry = DocumentLockRegistry()
