"""
Command layer: validate a request, then append exactly one event.

Commands carry no business branching and never touch process attributes.
Every check runs before the append; a request that fails any of them
leaves the store untouched. Once appended, an event is never rolled back.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Type

from ..core.errors import HandlerConfigError, ProcessNotFoundError, ValidationError
from ..core.events import event_type_name
from ..core.ids import new_id
from ..core.payloads import EventPayload, validate_payload
from ..core.process import Process
from ..log.store import valid_process_id
from ..logging_config import get_logger

# Precondition signature: (process or None when creating, validated payload) -> error message or None
Precondition = Callable[[Optional[Process], Dict[str, Any]], Optional[str]]


@dataclass(frozen=True)
class Command:
    """
    Declaration of one command.

    Fields:
        name: Command name callers use
        event_type: Event type the command appends
        kind: Process kind the command targets
        creates: The command creates its process (process_id optional, must be new)
        payload: Payload record overriding the event type's registered one
        preconditions: Business checks run against current state before appending
    """
    name: str
    event_type: Any
    kind: str
    creates: bool = False
    payload: Optional[Type[EventPayload]] = None
    preconditions: Sequence[Precondition] = ()


@dataclass(frozen=True)
class CommandResult:
    event_id: str
    process_id: str
    status: Optional[str]
    failed_actions: Tuple[str, ...] = ()


class CommandLayer:
    """
    Usage:
        layer = CommandLayer(runtime)
        layer.register(Command("record_payment", OrderEvent.PAYMENT_SUCCEEDED, "order"))
        result = layer.handle("record_payment", {"process_id": "order-1", "amount": 100})
    """

    def __init__(self, runtime) -> None:
        self.runtime = runtime
        self._commands: Dict[str, Command] = {}

    @property
    def commands(self) -> Dict[str, Command]:
        return dict(self._commands)

    def register(self, command: Command) -> None:
        """
        Raises:
            HandlerConfigError: Duplicate name, unknown kind, or event type outside the kind's enumeration
        """
        if command.name in self._commands:
            raise HandlerConfigError(f"command registered twice: {command.name}")
        definition = self.runtime.definition(command.kind)
        if not definition.registry.accepts(command.event_type):
            raise HandlerConfigError(
                f"command {command.name}: {event_type_name(command.event_type)} is not an event type of {command.kind}"
            )
        self._commands[command.name] = command

    def _payload(self, command: Command, raw: Dict[str, Any]) -> Dict[str, Any]:
        if command.payload is not None:
            return validate_payload(command.payload, raw, command.name)
        registry = self.runtime.definition(command.kind).registry
        return registry.validate_payload(command.event_type, raw)

    def _check_preconditions(self, command: Command, process: Optional[Process], payload: Dict[str, Any]) -> None:
        for check in command.preconditions:
            problem = check(process, payload)
            if problem:
                raise ValidationError(f"{command.name} rejected: {problem}")

    def _target(self, command: Command, process_id: Any) -> str:
        if command.creates:
            if process_id is None:
                return new_id()
            if not valid_process_id(process_id):
                raise ValidationError(f"invalid process id: {process_id!r}")
            if self.runtime.store.exists(process_id):
                raise ValidationError(f"process {process_id} already exists")
            return process_id
        if process_id is None:
            raise ValidationError(f"{command.name} requires a process_id")
        if not valid_process_id(process_id):
            raise ValidationError(f"invalid process id: {process_id!r}")
        return process_id

    def handle(self, command_name: str, parameters: Optional[Mapping[str, Any]] = None) -> CommandResult:
        """
        Validate and apply one command.

        Args:
            command_name: Registered command name
            parameters: process_id (omit to generate one on creating commands) plus payload fields

        Returns:
            CommandResult with the appended event id and the rebuilt status

        Raises:
            ValidationError: Unknown command, bad or unknown process id, invalid payload,
                process flagged as corrupt, or a failed precondition
        """
        command = self._commands.get(command_name)
        if command is None:
            raise ValidationError(f"unknown command: {command_name}")
        params = dict(parameters or {})
        process_id = self._target(command, params.pop("process_id", None))
        payload = self._payload(command, params)
        logger = get_logger(__name__, process_id=process_id)

        with self.runtime.locks.hold(process_id):
            if command.creates:
                if self.runtime.store.exists(process_id):
                    raise ValidationError(f"process {process_id} already exists")
                self._check_preconditions(command, None, payload)
                self.runtime.create(command.kind, process_id)
            else:
                try:
                    process = self.runtime.store.load(process_id)
                except ProcessNotFoundError:
                    raise ValidationError(f"process {process_id} not found")
                if process.kind != command.kind:
                    raise ValidationError(f"process {process_id} is a {process.kind}, not a {command.kind}")
                if process.flagged:
                    raise ValidationError(f"process {process_id} is flagged as corrupt: {process.flagged}")
                self._check_preconditions(command, process, payload)

            event, result = self.runtime.append(process_id, command.event_type, payload)

        logger.info(f"Handled {command.name}: {event.type} ({event.id}) -> {result.status}")
        return CommandResult(
            event_id=event.id,
            process_id=process_id,
            status=result.status,
            failed_actions=tuple(e.action for e in result.failed),
        )
