"""
In-memory process store.

Keeps serialized records, so loaded processes are independent copies and
nothing reaches the store until save(). Intended for tests and demos.
"""

import copy
import threading
from typing import Any, Dict, List, Optional

from ..core.errors import EventStoreError, ProcessNotFoundError
from ..core.events import Event
from ..core.process import Process
from .integrity import rechain
from .store import ProcessStore


class InMemoryProcessStore(ProcessStore):
    def __init__(self, clock=None) -> None:
        super().__init__(clock)
        self._records: Dict[str, Dict[str, Any]] = {}
        self._chains: Dict[str, List[Dict[str, Any]]] = {}
        self._corrections: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def _read_record(self, process_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            rec = self._records.get(process_id)
            return copy.deepcopy(rec) if rec is not None else None

    def _chain(self, process_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._chains.get(process_id, []))

    def create(self, kind: str, process_id: Optional[str] = None) -> Process:
        record = self._new_record(kind, process_id)
        with self._lock:
            if record["id"] in self._records:
                raise EventStoreError(f"process already exists: {record['id']}")
            self._records[record["id"]] = record
            self._chains[record["id"]] = []
        return self.load(record["id"])

    def append(self, process_id, event_type, payload, occurred_at=None) -> Event:
        with self._lock:
            if process_id not in self._records:
                raise ProcessNotFoundError(process_id)
            chain = self._chains[process_id]
            rec = self._next_chain_record(
                process_id, event_type, payload, occurred_at, chain[-1] if chain else None
            )
            chain.append(rec)
            return Event.from_dict(copy.deepcopy(rec["event"]))

    def save(self, process: Process) -> None:
        with self._lock:
            self._records[process.id] = copy.deepcopy(self._record_from(process))

    def flag(self, process_id: str, reason: str) -> None:
        with self._lock:
            if process_id not in self._records:
                raise ProcessNotFoundError(process_id)
            self._records[process_id]["flagged"] = reason

    def ids(self, kind: Optional[str] = None) -> List[str]:
        with self._lock:
            return sorted(pid for pid, rec in self._records.items() if kind is None or rec["kind"] == kind)

    def remove(self, process_id: str, event_id: str, reason: str, actor: str) -> Event:
        with self._lock:
            if process_id not in self._records:
                raise ProcessNotFoundError(process_id)
            chain = self._chains[process_id]
            target = next((r for r in chain if r["event"]["id"] == event_id), None)
            if target is None:
                raise EventStoreError(f"event {event_id} not found in process {process_id}")
            self._chains[process_id] = rechain(r["event"] for r in chain if r is not target)
            self._records[process_id]["outcomes"].pop(event_id, None)
            self._corrections.setdefault(process_id, []).append(
                self._correction(target["event"], reason, actor, self.clock.now())
            )
            return Event.from_dict(copy.deepcopy(target["event"]))

    def corrections(self, process_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._corrections.get(process_id, []))
