"""
Exception types for the process engine.
"""

from typing import Any, Dict, List, Optional


class ProcflowError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(ProcflowError):
    """Raised by the command layer when a request fails before any event is recorded."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class HandlerConfigError(ProcflowError):
    """Raised on duplicate or conflicting handler registration (startup only)."""
    pass


class ConditionEvaluationError(ProcflowError):
    """Wraps a failing condition. Logged and treated as "condition not met"."""

    def __init__(self, condition: str, event_type: str, cause: BaseException) -> None:
        super().__init__(f"condition {condition} failed on {event_type}: {cause}")
        self.condition = condition
        self.event_type = event_type
        self.cause = cause


class ActionExecutionError(ProcflowError):
    """Raised by action bodies (or wrapped around them) when an external effect fails."""

    code = "ACTION_FAILED"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code:
            self.code = code


class ActionTimeoutError(ActionExecutionError):
    """Raised when an action exceeds the dispatcher timeout."""

    code = "TIMEOUT"


class ReplayCorruptionError(ProcflowError):
    """Raised when a stored event sequence cannot be replayed against the current registry."""

    def __init__(self, process_id: str, reason: str) -> None:
        super().__init__(f"process {process_id} cannot be replayed: {reason}")
        self.process_id = process_id
        self.reason = reason


class ProcessNotFoundError(ProcflowError):
    """Raised when a process id is unknown to the repository."""
    pass


class EventStoreError(ProcflowError):
    """Raised when event store operations fail."""
    pass


class IntegrityError(ProcflowError):
    """Raised when a stored hash chain does not verify."""
    pass


class ConfigError(ProcflowError):
    """Raised for invalid runtime configuration."""
    pass
