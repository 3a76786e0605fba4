"""
Per-process mutual exclusion.

Append, replay and dispatch for one process id are serialized. Different
process ids never contend: the registry mutex is held only to look up or
create a lock, never while work runs.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class ProcessLocks:
    """
    Re-entrant lock per process id.

    Usage:
        locks = ProcessLocks()
        with locks.hold("order-1"):
            ...
    """

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._mutex = threading.Lock()

    def lock_for(self, process_id: str) -> threading.RLock:
        with self._mutex:
            lock = self._locks.get(process_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[process_id] = lock
            return lock

    @contextmanager
    def hold(self, process_id: str) -> Iterator[None]:
        lock = self.lock_for(process_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._mutex:
            return len(self._locks)
