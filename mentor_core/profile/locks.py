"""Per-learner in-process locks serializing profile writes."""
from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager


class ProfileLocks:
    """
    Registry of one re-entrant lock per user id.

    Locks are held weakly; a learner's entry disappears once no caller
    holds or waits on its lock.

    Full recompute and incremental updates for the same learner hold the
    same lock, so they never interleave inside this process. Writers in
    other processes are caught by the version compare-and-swap instead.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, threading.RLock] = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    def for_user(self, user_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self.for_user(user_id):
            yield

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every engine in the process
profile_locks = ProfileLocks()
