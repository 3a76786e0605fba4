"""
Process aggregate.

A process's attributes and status are derived: they are written only by the
replay builder and always equal the result of replaying its events.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from .canonical import canonicalize
from .events import Event


@dataclass(frozen=True)
class ProcessSnapshot:
    """
    Read-only view of a process handed to conditions and actions.

    Attributes are deep-copied at the point of the replay where the
    snapshot was taken.
    """
    id: str
    kind: str
    created_at: datetime
    attributes: Mapping[str, Any]

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)


@dataclass
class Process:
    """
    Aggregate root for one business workflow instance.

    Fields:
        id: Opaque identifier, immutable after creation
        kind: Process definition this instance follows (e.g. "order")
        created_at: Creation timestamp
        attributes: Derived domain fields
        status: Derived status (recomputed on every replay)
        events: Ordered events owned by this process
        flagged: Reason the process could not be replayed, if any
    """
    id: str
    kind: str
    created_at: datetime
    attributes: Dict[str, Any] = field(default_factory=dict)
    status: Optional[str] = None
    events: List[Event] = field(default_factory=list)
    flagged: Optional[str] = None

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def event(self, event_id: str) -> Optional[Event]:
        for ev in self.events:
            if ev.id == event_id:
                return ev
        return None

    def snapshot(self) -> ProcessSnapshot:
        return ProcessSnapshot(
            id=self.id,
            kind=self.kind,
            created_at=self.created_at,
            attributes=MappingProxyType(copy.deepcopy(self.attributes)),
        )

    def derived_state(self) -> Dict[str, Any]:
        """Everything replay derives, in canonical form."""
        return canonicalize(
            {
                "id": self.id,
                "kind": self.kind,
                "attributes": self.attributes,
                "status": self.status,
            }
        )
