"""
Column Locks - per-(project_id, status) mutual exclusion

Reordering a column is a read-modify-write over many rows. Two requests
rewriting the same column at once would interleave their writes and leave
duplicate or missing positions, so each ordering operation holds the lock of
every column it reads until its transaction commits.
"""

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Tuple

from services.errors import StorageFailureError

logger = logging.getLogger(__name__)

ColumnKey = Tuple[int, str]


class ColumnLock:
    """Mutex of one column. Weak-referenceable so idle columns can be dropped."""
    __slots__ = ('_lock', '__weakref__')

    def __init__(self):
        self._lock = threading.Lock()

    def acquire(self, blocking: bool = True, timeout: float = -1) -> bool:
        return self._lock.acquire(blocking, timeout)

    def release(self) -> None:
        self._lock.release()

    def locked(self) -> bool:
        return self._lock.locked()


class ColumnLockRegistry:
    """
    Lazily created lock per column key.

    Entries are weak: a column's lock lives only while some caller holds a
    reference to it, so status strings seen once do not accumulate.

    ``hold()`` acquires several columns in sorted key order so two operations
    touching overlapping columns cannot deadlock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[ColumnKey, ColumnLock]" = weakref.WeakValueDictionary()

    def lock_for(self, project_id: int, status: str) -> ColumnLock:
        key = (project_id, status)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = ColumnLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[ColumnKey], timeout: Optional[float] = None) -> Iterator[List[ColumnKey]]:
        """
        Hold the locks of all given columns for the duration of the block.

        Args:
            keys: (project_id, status) pairs; duplicates are ignored
            timeout: Seconds to wait per lock; None waits forever

        Raises:
            StorageFailureError: a lock could not be acquired within the timeout
        """
        ordered = sorted(set(keys))
        acquired: List[ColumnLock] = []
        try:
            for key in ordered:
                lock = self.lock_for(*key)
                if not lock.acquire(timeout=-1 if timeout is None else timeout):
                    logger.warning(f"[COLUMN_LOCK] Timed out after {timeout}s waiting for column {key}")
                    raise StorageFailureError(
                        f"Timed out waiting for column {key[1]!r} of project {key[0]}",
                        context={'project_id': key[0], 'status': key[1]}
                    )
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()

    def is_locked(self, project_id: int, status: str) -> bool:
        return self.lock_for(project_id, status).locked()

    def __len__(self) -> int:
        return len(self._locks)


# Process-wide registry shared by every request handler
column_locks = ColumnLockRegistry()
