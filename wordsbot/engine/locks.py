"""In-process locks keyed by chat id."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class SessionLocks:
    """
    One re-entrant lock per chat.

    Serializes the check-then-write steps of scheduling and grading for a
    chat inside this process. Different chats never wait on each other.
    A chat's lock is dropped once nobody holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.RLock] = {}
        self._holders: dict[int, int] = {}

    def _acquire_entry(self, session_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.RLock()
            self._holders[session_id] = self._holders.get(session_id, 0) + 1
            return lock

    def _release_entry(self, session_id: int) -> None:
        with self._guard:
            remaining = self._holders[session_id] - 1
            if remaining:
                self._holders[session_id] = remaining
            else:
                del self._holders[session_id]
                del self._locks[session_id]

    @contextmanager
    def hold(self, session_id: int) -> Iterator[None]:
        # Counted before waiting, so the entry outlives every waiter
        lock = self._acquire_entry(session_id)
        try:
            with lock:
                yield
        finally:
            self._release_entry(session_id)

    def __len__(self) -> int:
        return len(self._locks)
