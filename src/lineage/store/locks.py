"""Advisory locks keyed by family root.

Mutations that touch overlapping subtrees share a root id and therefore
serialize here; mutations on disjoint families proceed concurrently.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from threading import Lock, RLock


class RootLocks:
    """Process-local registry of one re-entrant lock per root id."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, RLock] = {}

    def _lock_for(self, root_id: str) -> RLock:
        with self._guard:
            lock = self._locks.get(root_id)
            if lock is None:
                lock = RLock()
                self._locks[root_id] = lock
            return lock

    @contextmanager
    def hold(self, root_ids: Iterable[str]) -> Iterator[frozenset[str]]:
        """Acquire the locks for all root ids, in sorted order.

        Yields:
            The set of root ids now held.
        """
        keys = sorted(set(root_ids))
        acquired: list[RLock] = []
        try:
            for key in keys:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield frozenset(keys)
        finally:
            for lock in reversed(acquired):
                lock.release()

    def __len__(self) -> int:
        return len(self._locks)
