"""
Replay runner: load, rebuild and persist one process.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..core.definition import ProcessDefinition
from ..core.process import Process
from ..dispatch.dispatcher import ActionDispatcher, ExecutedAction
from ..log.store import ProcessRepository
from ..metrics import track_replay_duration
from .builder import Builder


@dataclass(frozen=True)
class ReplayResult:
    """
    Result of a replay operation.

    Fields:
        process: Rebuilt process
        applied: Number of events whose mutation ran
        skipped: Number of events without a handler
        executed: Action executions performed
        as_of: Point in time the replay was cut at (None = full history)
        persisted: Whether the rebuilt state was saved
    """
    process: Process
    applied: int
    skipped: int
    executed: List[ExecutedAction] = field(default_factory=list)
    as_of: Optional[datetime] = None
    persisted: bool = False

    @property
    def status(self) -> Optional[str]:
        return self.process.status

    @property
    def failed(self) -> List[ExecutedAction]:
        return [e for e in self.executed if not e.outcome.succeeded]


def rebuild_process(
    repository: ProcessRepository,
    builder: Builder,
    process: Process,
    dispatch: bool = True,
    as_of: Optional[datetime] = None,
) -> ReplayResult:
    """
    Build an already-loaded process and persist it.

    A point-in-time rebuild (as_of given) is read-only: it never dispatches
    actions and never persists.
    """
    read_only = as_of is not None

    with track_replay_duration():
        built = builder.build(process, dispatch=dispatch and not read_only)

    if not read_only:
        process.flagged = None
        repository.save(process)

    return ReplayResult(
        process=process,
        applied=built.applied,
        skipped=built.skipped,
        executed=built.executed,
        as_of=as_of,
        persisted=not read_only,
    )


def replay(
    repository: ProcessRepository,
    definition: ProcessDefinition,
    process_id: str,
    dispatcher: Optional[ActionDispatcher] = None,
    as_of: Optional[datetime] = None,
    dispatch: bool = True,
    builder: Optional[Builder] = None,
) -> ReplayResult:
    """
    Rebuild a process from its stored events.

    Args:
        repository: Store holding the process and its events
        definition: Process definition for the process's kind
        process_id: Process to rebuild
        dispatcher: Dispatcher for pending actions
        as_of: Only replay events with occurred_at <= as_of (read-only)
        dispatch: Execute pending actions (ignored when as_of is given)
        builder: Reuse an existing builder

    Returns:
        ReplayResult with the rebuilt process

    Raises:
        ProcessNotFoundError: Unknown process id
        ReplayCorruptionError: Stored events cannot be replayed
    """
    builder = builder or Builder(definition, dispatcher)
    process = repository.load(process_id, as_of=as_of)
    return rebuild_process(repository, builder, process, dispatch=dispatch, as_of=as_of)
