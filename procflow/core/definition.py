"""
Process definition: what a kind of process is made of.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple

from .context import ReplayContext
from .process import Process
from .registry import HandlerRegistry


@dataclass(frozen=True)
class ProcessDefinition:
    """
    Static description of one process kind.

    Fields:
        kind: Process kind name (e.g. "order")
        registry: Frozen handler registry
        initial_attributes: Factory for pre-event attribute values
        derive_status: Pure, total function of final process/context
        statuses: Allowed status values (empty = unchecked)
    """
    kind: str
    registry: HandlerRegistry
    initial_attributes: Callable[[], Dict[str, Any]]
    derive_status: Callable[[Process, ReplayContext], str]
    statuses: Tuple[str, ...] = ()
