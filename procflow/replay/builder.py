"""
Replay builder: reconstruct a process from its events.

For each event in append order the builder applies the registered mutation,
marks subscribed actions whose conditions all pass as pending, and hands
pending actions to the dispatcher. Replaying an unchanged sequence twice
yields identical derived state and never re-runs a succeeded action.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..core.context import ReplayContext
from ..core.definition import ProcessDefinition
from ..core.errors import ConditionEvaluationError, ReplayCorruptionError
from ..core.events import ActionRecord, Event
from ..core.ids import action_key
from ..core.process import Process, ProcessSnapshot
from ..core.registry import Registration, Subscription, callable_name
from ..dispatch.dispatcher import ActionDispatcher, ExecutedAction
from ..logging_config import get_logger
from ..metrics import track_condition_error


@dataclass
class BuildResult:
    """
    Result of one build pass.

    Fields:
        process: The rebuilt process (same object that was passed in)
        applied: Events whose mutation ran
        skipped: Events with no registered handler (kept for audit, no effect)
        marked: (event_id, action) pairs newly marked pending in this pass
        executed: Action executions performed in this pass
        context: The pass's replay context (discard after inspection)
    """
    process: Process
    applied: int = 0
    skipped: int = 0
    marked: List[Tuple[str, str]] = field(default_factory=list)
    executed: List[ExecutedAction] = field(default_factory=list)
    context: Optional[ReplayContext] = None

    @property
    def failed(self) -> List[ExecutedAction]:
        return [e for e in self.executed if not e.outcome.succeeded]


class Builder:
    """
    Rebuilds processes of one definition.

    Usage:
        builder = Builder(definition, dispatcher=ActionDispatcher())
        result = builder.build(process)
        result.process.status
    """

    def __init__(self, definition: ProcessDefinition, dispatcher: Optional[ActionDispatcher] = None) -> None:
        self.definition = definition
        self.dispatcher = dispatcher or ActionDispatcher()

    @property
    def registry(self):
        return self.definition.registry

    def _check_order(self, process: Process) -> None:
        prev = None
        for ev in process.events:
            if ev.process_id != process.id:
                raise ReplayCorruptionError(process.id, f"event {ev.id} belongs to {ev.process_id}")
            if prev is not None:
                if ev.position <= prev.position:
                    raise ReplayCorruptionError(
                        process.id, f"event {ev.id} position {ev.position} after {prev.position}"
                    )
                if ev.occurred_at < prev.occurred_at:
                    raise ReplayCorruptionError(
                        process.id, f"event {ev.id} occurred before its predecessor {prev.id}"
                    )
            prev = ev

    def _check_records(self, process: Process, event: Event, reg: Optional[Registration]) -> None:
        if reg is None:
            if event.actions:
                raise ReplayCorruptionError(
                    process.id,
                    f"event {event.id} of unregistered type {event.type} carries action records "
                    f"{sorted(event.actions)}",
                )
            return
        unknown = [name for name in event.actions if reg.subscription(name) is None]
        if unknown:
            raise ReplayCorruptionError(
                process.id,
                f"event {event.id} ({event.type}) has records for unsubscribed actions {sorted(unknown)}",
            )

    def _conditions_pass(
        self, sub: Subscription, snapshot: ProcessSnapshot, event: Event, context: ReplayContext, logger
    ) -> bool:
        for cond in sub.conditions:
            try:
                with context.frozen():
                    ok = bool(cond(snapshot, event, context))
            except Exception as ex:
                err = ConditionEvaluationError(callable_name(cond), event.type, ex)
                logger.warning(f"{err}; treating as not met", exc_info=True)
                track_condition_error(event.type)
                return False
            if not ok:
                return False
        return True

    def _mark(
        self, reg: Registration, snapshot: ProcessSnapshot, event: Event, context: ReplayContext, logger
    ) -> List[Tuple[str, str]]:
        marked = []
        for sub in reg.subscriptions:
            if sub.name in event.actions:
                continue
            if self._conditions_pass(sub, snapshot, event, context, logger):
                event.actions[sub.name] = ActionRecord(name=sub.name, key=action_key(event.id, sub.name))
                marked.append((event.id, sub.name))
        # keep records in subscription order
        order = {name: i for i, name in enumerate(reg.action_names)}
        ordered = sorted(event.actions.items(), key=lambda kv: order[kv[0]])
        event.actions.clear()
        event.actions.update(ordered)
        return marked

    def build(self, process: Process, dispatch: bool = True) -> BuildResult:
        """
        Replay all events of the process from its initial state.

        Args:
            process: Process with its ordered events (possibly filtered to a point in time)
            dispatch: Execute pending actions (False for read-only rebuilds)

        Returns:
            BuildResult; process.attributes and process.status are recomputed

        Raises:
            ReplayCorruptionError: If the event sequence cannot be replayed
        """
        logger = get_logger(__name__, process_id=process.id)
        self._check_order(process)

        process.attributes = self.definition.initial_attributes()
        process.status = None
        context = ReplayContext(process.id)
        result = BuildResult(process=process, context=context)

        for ev in process.events:
            reg = self.registry.lookup(ev.type)
            self._check_records(process, ev, reg)
            if reg is None:
                logger.debug(f"No handler for {ev.type} ({ev.id}); kept for audit")
                result.skipped += 1
                continue

            try:
                reg.mutate(process, ev, context)
            except Exception as ex:
                raise ReplayCorruptionError(
                    process.id, f"mutation {callable_name(reg.mutate)} failed on {ev.type} ({ev.id}): {ex}"
                ) from ex
            result.applied += 1

            snapshot = process.snapshot()
            result.marked.extend(self._mark(reg, snapshot, ev, context, logger))
            if dispatch and ev.pending_actions:
                result.executed.extend(self.dispatcher.dispatch(reg, snapshot, ev, context))

        status = self.definition.derive_status(process, context)
        if not isinstance(status, str) or (self.definition.statuses and status not in self.definition.statuses):
            raise ReplayCorruptionError(process.id, f"status derivation returned {status!r}")
        process.status = status

        logger.debug(
            f"Built {process.kind} {process.id}: status={status} applied={result.applied} "
            f"skipped={result.skipped} executed={len(result.executed)}"
        )
        return result
