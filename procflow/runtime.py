"""
Process runtime: the engine's entry points.

Wires definitions, the store, the dispatcher and per-process locks. Every
operation on a process runs under that process's lock; operations on
different processes run independently.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .core.definition import ProcessDefinition
from .core.errors import HandlerConfigError, ReplayCorruptionError, ValidationError
from .core.events import Event, ActionRecord, event_type_name
from .core.ids import action_key
from .core.process import Process
from .dispatch.dispatcher import ActionDispatcher
from .locks import ProcessLocks
from .log.store import ProcessStore
from .logging_config import get_logger
from .metrics import track_corruption, track_event, track_forced_action
from .replay.builder import Builder
from .replay.runner import ReplayResult, rebuild_process


@dataclass
class ReprocessReport:
    """Outcome of rebuilding many processes."""

    rebuilt: List[str] = field(default_factory=list)
    flagged: Dict[str, str] = field(default_factory=dict)
    failed_actions: int = 0


class ProcessRuntime:
    """
    Usage:
        runtime = ProcessRuntime(store, [order_definition], dispatcher=ActionDispatcher(timeout=30))
        process = runtime.create("order")
        event, result = runtime.append(process.id, "CUSTOMER_REQUESTED", {...})
    """

    def __init__(
        self,
        store: ProcessStore,
        definitions: Iterable[ProcessDefinition],
        dispatcher: Optional[ActionDispatcher] = None,
        locks: Optional[ProcessLocks] = None,
        clock=None,
    ) -> None:
        self.store = store
        self.clock = clock or store.clock
        self.dispatcher = dispatcher or ActionDispatcher(clock=self.clock)
        self.locks = locks or ProcessLocks()
        self.definitions: Dict[str, ProcessDefinition] = {}
        self._builders: Dict[str, Builder] = {}
        for definition in definitions:
            if definition.kind in self.definitions:
                raise HandlerConfigError(f"process kind defined twice: {definition.kind}")
            definition.registry.freeze()
            self.definitions[definition.kind] = definition
            self._builders[definition.kind] = Builder(definition, self.dispatcher)

    def close(self) -> None:
        self.dispatcher.close()

    def definition(self, kind: str) -> ProcessDefinition:
        try:
            return self.definitions[kind]
        except KeyError:
            raise HandlerConfigError(f"no definition for process kind {kind!r}")

    def builder(self, kind: str) -> Builder:
        self.definition(kind)
        return self._builders[kind]

    # -- writes -----------------------------------------------------------

    def create(self, kind: str, process_id: Optional[str] = None) -> Process:
        self.definition(kind)
        process = self.store.create(kind, process_id)
        get_logger(__name__, process_id=process.id).info(f"Created {kind} process")
        return process

    def append(
        self,
        process_id: str,
        event_type: Any,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
    ) -> Tuple[Event, ReplayResult]:
        """
        Append one event and rebuild the process (dispatching its actions).

        The payload is validated against the event type's record and stored
        in normalized form; an invalid payload is never written.

        Raises:
            ProcessNotFoundError: Unknown process
            ValidationError: Event type outside the process's enumeration, or
                a payload that does not match its record
            ReplayCorruptionError: The rebuilt sequence cannot be replayed
        """
        with self.locks.hold(process_id):
            process = self.store.load(process_id)
            definition = self.definition(process.kind)
            if not definition.registry.accepts(event_type):
                raise ValidationError(
                    f"{event_type_name(event_type)} is not an event type of {process.kind}"
                )
            payload = definition.registry.validate_payload(event_type, payload)
            event = self.store.append(process_id, event_type, payload, occurred_at=occurred_at)
            track_event(event.type)
            get_logger(__name__, process_id=process_id).info(
                f"Appended {event.type} at position {event.position} ({event.id})"
            )
            return event, self._rebuild(process_id)

    def rebuild(self, process_id: str, dispatch: bool = True) -> ReplayResult:
        """Replay a process from scratch, retrying failed actions."""
        with self.locks.hold(process_id):
            return self._rebuild(process_id, dispatch=dispatch)

    def state_at(self, process_id: str, as_of: datetime) -> ReplayResult:
        """Read-only reconstruction from events with occurred_at <= as_of."""
        with self.locks.hold(process_id):
            process = self.store.load(process_id, as_of=as_of)
            return rebuild_process(self.store, self.builder(process.kind), process, as_of=as_of)

    def reprocess_all(self, kind: Optional[str] = None) -> ReprocessReport:
        """
        Rebuild every process (optionally of one kind).

        Corrupt processes are flagged and reported; the run continues.
        """
        report = ReprocessReport()
        for process_id in self.store.ids(kind):
            try:
                result = self.rebuild(process_id)
            except ReplayCorruptionError as ex:
                report.flagged[process_id] = ex.reason
                continue
            report.rebuilt.append(process_id)
            report.failed_actions += len(result.failed)
        return report

    def force_action(self, process_id: str, event_id: str, action: str, reason: str, actor: str) -> ReplayResult:
        """
        Explicitly re-execute one action on one event.

        The action's record is reset to pending regardless of its previous
        status or its conditions, an audit entry is attached to the record,
        and the process is rebuilt, which executes it.

        Raises:
            ValidationError: Missing reason/actor, unknown event, or action not
                subscribed to the event's type
        """
        if not reason or not actor:
            raise ValidationError("forcing an action requires a reason and an actor")
        with self.locks.hold(process_id):
            process = self.store.load(process_id)
            event = process.event(event_id)
            if event is None:
                raise ValidationError(f"event {event_id} not found in process {process_id}")
            registry = self.definition(process.kind).registry
            if registry.lookup(event.type) is None or registry.lookup(event.type).subscription(action) is None:
                raise ValidationError(f"action {action} is not subscribed to {event.type}")

            record = event.actions.get(action)
            if record is None:
                record = ActionRecord(name=action, key=action_key(event.id, action))
                event.actions[action] = record
            record.force(reason=reason, actor=actor, at=self.clock.now())

            get_logger(__name__, process_id=process_id).warning(
                f"Forcing action {action} on {event.type} ({event.id}) by {actor}: {reason}"
            )
            track_forced_action(action)
            return self._build(process)

    def remove_event(self, process_id: str, event_id: str, reason: str, actor: str) -> ReplayResult:
        """
        Remove an event as an audited correction and rebuild the process.

        Raises:
            ValidationError: Missing reason/actor
            EventStoreError: Unknown event
        """
        if not reason or not actor:
            raise ValidationError("removing an event requires a reason and an actor")
        with self.locks.hold(process_id):
            removed = self.store.remove(process_id, event_id, reason=reason, actor=actor)
            get_logger(__name__, process_id=process_id).warning(
                f"Removed {removed.type} at position {removed.position} ({removed.id}) by {actor}: {reason}"
            )
            return self._rebuild(process_id)

    # -- internals --------------------------------------------------------

    def _rebuild(self, process_id: str, dispatch: bool = True) -> ReplayResult:
        process = self.store.load(process_id)
        return self._build(process, dispatch=dispatch)

    def _build(self, process: Process, dispatch: bool = True) -> ReplayResult:
        try:
            return rebuild_process(self.store, self.builder(process.kind), process, dispatch=dispatch)
        except ReplayCorruptionError as ex:
            get_logger(__name__, process_id=process.id).error(f"Replay failed, flagging process: {ex.reason}")
            track_corruption()
            self.store.flag(process.id, ex.reason)
            raise
