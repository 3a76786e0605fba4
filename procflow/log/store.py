"""
Event store and process repository interfaces.

Defines the contract the engine consumes from persistence, plus the
ProcessStore base shared by the bundled backends.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

from ..core.clock import SystemClock, parse_timestamp
from ..core.errors import EventStoreError, ProcessNotFoundError
from ..core.events import Event, event_type_name
from ..core.ids import new_id
from ..core.process import Process
from .integrity import ZERO_HASH, chain_record, verify_chain

PROCESS_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def valid_process_id(process_id: Any) -> bool:
    return isinstance(process_id, str) and PROCESS_ID_RE.match(process_id) is not None


class EventStore(ABC):
    """
    Append-only, per-process ordered event log.

    All implementations must guarantee:
    - New events get the next position and a timestamp >= all prior events
    - Events are durable before append() returns
    - Event type, payload and timestamp never change after append
    """

    @abstractmethod
    def append(
        self,
        process_id: str,
        event_type: Any,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
    ) -> Event:
        """
        Append an event to a process's log.

        Args:
            process_id: Owning process (must exist)
            event_type: Event type tag
            payload: Event payload (JSON-compatible)
            occurred_at: Explicit timestamp; defaults to the store clock

        Returns:
            Stored Event with id, position and occurred_at assigned

        Raises:
            ProcessNotFoundError: Unknown process
            EventStoreError: Write failed or occurred_at precedes the last event
        """
        ...

    @abstractmethod
    def read(self, process_id: str, until: Optional[datetime] = None) -> Iterator[Event]:
        """
        Read a process's events in append order, with their action records.

        Args:
            process_id: Process to read
            until: Only events with occurred_at <= until (None = all)
        """
        ...

    @abstractmethod
    def remove(self, process_id: str, event_id: str, reason: str, actor: str) -> Event:
        """
        Remove one event as an audited correction.

        A correction entry (event, reason, actor, time) is recorded.
        The process must be rebuilt afterwards.
        """
        ...

    @abstractmethod
    def corrections(self, process_id: str) -> List[Dict[str, Any]]:
        """Audit entries of removed events, oldest first."""
        ...

    @abstractmethod
    def verify(self, process_id: str) -> int:
        """
        Verify the process's hash chain.

        Returns:
            Number of verified events

        Raises:
            IntegrityError: If the chain is broken
        """
        ...


class ProcessRepository(ABC):
    """
    Loads and saves process aggregates.

    save() writes derived attributes, status, flag and every event's action
    records atomically per process.
    """

    @abstractmethod
    def create(self, kind: str, process_id: Optional[str] = None) -> Process:
        ...

    @abstractmethod
    def exists(self, process_id: str) -> bool:
        ...

    @abstractmethod
    def load(self, process_id: str, as_of: Optional[datetime] = None) -> Process:
        """
        Load a process with its ordered events.

        Raises:
            ProcessNotFoundError: Unknown process
        """
        ...

    @abstractmethod
    def save(self, process: Process) -> None:
        ...

    @abstractmethod
    def flag(self, process_id: str, reason: str) -> None:
        """Mark a process as not replayable (see ReplayCorruptionError)."""
        ...

    @abstractmethod
    def ids(self, kind: Optional[str] = None) -> List[str]:
        ...


class ProcessStore(EventStore, ProcessRepository):
    """
    Shared behaviour of the bundled backends.

    Backends persist two things per process:
    - a process record: {id, kind, created_at, attributes, status, flagged,
      outcomes: {event_id: [action record dicts]}}
    - a chain of storage records: [{prev_hash, event_hash, event}]
    """

    def __init__(self, clock=None) -> None:
        self.clock = clock or SystemClock()

    # -- backend primitives ---------------------------------------------

    @abstractmethod
    def _read_record(self, process_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def _chain(self, process_id: str) -> List[Dict[str, Any]]:
        ...

    # -- shared helpers -------------------------------------------------

    def _check_id(self, process_id: str) -> None:
        if not valid_process_id(process_id):
            raise EventStoreError(f"invalid process id: {process_id!r}")

    def _new_record(self, kind: str, process_id: Optional[str]) -> Dict[str, Any]:
        pid = process_id or new_id()
        self._check_id(pid)
        return {
            "id": pid,
            "kind": kind,
            "created_at": self.clock.now().isoformat(),
            "attributes": {},
            "status": None,
            "flagged": None,
            "outcomes": {},
        }

    def _next_chain_record(
        self,
        process_id: str,
        event_type: Any,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime],
        last: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        last_ts = parse_timestamp(last["event"]["occurred_at"]) if last else None
        if occurred_at is not None:
            if occurred_at.tzinfo is None:
                occurred_at = occurred_at.replace(tzinfo=timezone.utc)
            if last_ts is not None and occurred_at < last_ts:
                raise EventStoreError(
                    f"occurred_at {occurred_at.isoformat()} precedes last event of {process_id}"
                )
            ts = occurred_at
        else:
            ts = self.clock.now()
            if last_ts is not None and ts < last_ts:
                ts = last_ts

        event = Event(
            id=new_id(),
            process_id=process_id,
            type=event_type_name(event_type),
            position=(last["event"]["position"] + 1) if last else 0,
            occurred_at=ts,
            payload=payload,
        )
        prev_hash = last["event_hash"] if last else ZERO_HASH
        return chain_record(prev_hash, event.to_dict())

    def _record_from(self, process: Process) -> Dict[str, Any]:
        record = self._read_record(process.id)
        if record is None:
            raise ProcessNotFoundError(process.id)
        record = dict(record)
        outcomes = dict(record.get("outcomes") or {})
        for ev in process.events:
            if ev.actions:
                outcomes[ev.id] = ev.outcomes_to_list()
            else:
                outcomes.pop(ev.id, None)
        record.update(
            {
                "attributes": process.attributes,
                "status": process.status,
                "flagged": process.flagged,
                "outcomes": outcomes,
            }
        )
        return record

    @staticmethod
    def _correction(event: Dict[str, Any], reason: str, actor: str, at: datetime) -> Dict[str, Any]:
        return {
            "event_id": event["id"],
            "event_type": event["type"],
            "position": event["position"],
            "occurred_at": event["occurred_at"],
            "payload": event.get("payload", {}),
            "reason": reason,
            "actor": actor,
            "removed_at": at.isoformat(),
        }

    # -- shared implementations -----------------------------------------

    def exists(self, process_id: str) -> bool:
        return valid_process_id(process_id) and self._read_record(process_id) is not None

    def read(self, process_id: str, until: Optional[datetime] = None) -> Iterator[Event]:
        record = self._read_record(process_id)
        if record is None:
            raise ProcessNotFoundError(process_id)
        outcomes = record.get("outcomes") or {}
        for rec in self._chain(process_id):
            ev = Event.from_dict(rec["event"], outcomes.get(rec["event"]["id"]))
            if until is not None and ev.occurred_at > until:
                break
            yield ev

    def load(self, process_id: str, as_of: Optional[datetime] = None) -> Process:
        record = self._read_record(process_id) if valid_process_id(process_id) else None
        if record is None:
            raise ProcessNotFoundError(process_id)
        return Process(
            id=record["id"],
            kind=record["kind"],
            created_at=parse_timestamp(record["created_at"]),
            attributes=dict(record.get("attributes") or {}),
            status=record.get("status"),
            events=list(self.read(process_id, until=as_of)),
            flagged=record.get("flagged"),
        )

    def verify(self, process_id: str) -> int:
        if self._read_record(process_id) is None:
            raise ProcessNotFoundError(process_id)
        return verify_chain(self._chain(process_id))
