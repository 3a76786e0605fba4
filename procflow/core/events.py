"""
Event model.

Events are immutable facts recorded against one process. Only the action
records attached to an event change after it is appended, and only through
the dispatcher or the audited force path.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from .canonical import canonicalize
from .clock import parse_timestamp
from .outcome import ActionStatus, Outcome


def event_type_name(event_type: Any) -> str:
    """Normalise an event type tag (enum member or string) to its string value."""
    if isinstance(event_type, Enum):
        return str(event_type.value)
    return str(event_type)


@dataclass
class ActionRecord:
    """
    Execution state of one action attached to one event.

    A record is created "pending" when the action's conditions pass and is
    updated in place by every execution attempt. Failed records remain
    pending and are retried on the next replay; succeeded records are
    never executed again unless forced.
    """
    name: str
    key: str
    status: ActionStatus = ActionStatus.PENDING
    attempts: int = 0
    error: Optional[Dict[str, Any]] = None
    detail: Any = None
    executed_at: Optional[datetime] = None
    forced: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_pending(self) -> bool:
        return self.status is not ActionStatus.SUCCEEDED

    def record(self, outcome: Outcome, at: datetime) -> None:
        self.status = outcome.status
        self.attempts += 1
        self.executed_at = at
        if outcome.succeeded:
            self.error = None
            self.detail = canonicalize(outcome.detail)
        else:
            self.error = dict(outcome.error or {})

    def force(self, reason: str, actor: str, at: datetime) -> None:
        """Reset to pending for an explicit, audited re-execution."""
        self.forced.append(
            {
                "at": at.isoformat(),
                "actor": actor,
                "reason": reason,
                "previous_status": self.status.value,
            }
        )
        self.status = ActionStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "key": self.key,
            "status": self.status.value,
            "attempts": self.attempts,
            "error": self.error,
            "detail": self.detail,
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            "forced": list(self.forced),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ActionRecord":
        executed_at = data.get("executed_at")
        return ActionRecord(
            name=data["name"],
            key=data.get("key", ""),
            status=ActionStatus(data.get("status", ActionStatus.PENDING.value)),
            attempts=int(data.get("attempts", 0)),
            error=data.get("error"),
            detail=data.get("detail"),
            executed_at=parse_timestamp(executed_at) if executed_at else None,
            forced=list(data.get("forced", [])),
        )


@dataclass(frozen=True, eq=False)
class Event:
    """
    Immutable event record.

    Fields:
        id: Opaque event identifier
        process_id: Owning process
        type: Event type tag from the process's fixed enumeration
        position: Append-order position (assigned by the store)
        occurred_at: Timestamp, non-decreasing in append order
        payload: Event-specific data (read-only mapping)
        actions: Action name -> ActionRecord, in subscription order
    """
    id: str
    process_id: str
    type: str
    position: int
    occurred_at: datetime
    payload: Mapping[str, Any] = field(default_factory=dict)
    actions: Dict[str, ActionRecord] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", event_type_name(self.type))
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    @property
    def pending_actions(self) -> List[str]:
        return [name for name, rec in self.actions.items() if rec.is_pending]

    def outcomes_to_list(self) -> List[Dict[str, Any]]:
        return [rec.to_dict() for rec in self.actions.values()]

    def to_dict(self) -> Dict[str, Any]:
        """Immutable part of the event (what the hash chain covers)."""
        return {
            "id": self.id,
            "process_id": self.process_id,
            "type": self.type,
            "position": self.position,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": canonicalize(self.payload),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any], outcomes: Optional[List[Dict[str, Any]]] = None) -> "Event":
        actions = {}
        for rec in outcomes or []:
            ar = ActionRecord.from_dict(rec)
            actions[ar.name] = ar
        return Event(
            id=data["id"],
            process_id=data["process_id"],
            type=data["type"],
            position=int(data["position"]),
            occurred_at=parse_timestamp(data["occurred_at"]),
            payload=data.get("payload", {}),
            actions=actions,
        )
