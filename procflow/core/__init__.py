"""
Core process-engine primitives.

- Event / ActionRecord: immutable facts and their mutable action outcomes
- Process: derived aggregate state
- ReplayContext: per-pass scratch state
- HandlerRegistry: event type -> mutation + subscriptions
- ProcessDefinition: registry + initial state + status derivation
- Canonical: deterministic serialization
"""

from .events import Event, ActionRecord, event_type_name
from .outcome import ActionStatus, Failure, Outcome
from .process import Process, ProcessSnapshot
from .context import ReplayContext
from .payloads import EventPayload
from .registry import HandlerRegistry, Registration, Subscription
from .definition import ProcessDefinition
from .canonical import canonicalize, canonical_json_bytes, canonical_json_str
from .clock import ManualClock, SystemClock
from .ids import action_key, new_id, stable_id
from .errors import (
    ProcflowError,
    ValidationError,
    HandlerConfigError,
    ConditionEvaluationError,
    ActionExecutionError,
    ActionTimeoutError,
    ReplayCorruptionError,
    ProcessNotFoundError,
    EventStoreError,
    IntegrityError,
    ConfigError,
)

__all__ = [
    "Event",
    "ActionRecord",
    "event_type_name",
    "ActionStatus",
    "Failure",
    "Outcome",
    "Process",
    "ProcessSnapshot",
    "ReplayContext",
    "EventPayload",
    "HandlerRegistry",
    "Registration",
    "Subscription",
    "ProcessDefinition",
    "canonicalize",
    "canonical_json_bytes",
    "canonical_json_str",
    "ManualClock",
    "SystemClock",
    "action_key",
    "new_id",
    "stable_id",
    "ProcflowError",
    "ValidationError",
    "HandlerConfigError",
    "ConditionEvaluationError",
    "ActionExecutionError",
    "ActionTimeoutError",
    "ReplayCorruptionError",
    "ProcessNotFoundError",
    "EventStoreError",
    "IntegrityError",
    "ConfigError",
]
