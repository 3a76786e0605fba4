"""
Action results.

An action either returns normally (success), returns a Failure, or raises.
The dispatcher folds all three into an Outcome that is written onto the
event. No exception crosses the dispatcher boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ActionStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Failure:
    """Returned by an action to report a failure without raising."""

    message: str
    code: str = "ACTION_FAILED"


@dataclass(frozen=True)
class Outcome:
    """
    Result of one action execution.

    Fields:
        status: SUCCEEDED or FAILED
        error: Stable error payload {type, code, message} for failures
        detail: Value returned by a successful action (JSON-compatible)
    """
    status: ActionStatus
    error: Optional[Dict[str, Any]] = None
    detail: Any = None

    @property
    def succeeded(self) -> bool:
        return self.status is ActionStatus.SUCCEEDED

    @staticmethod
    def success(detail: Any = None) -> "Outcome":
        return Outcome(status=ActionStatus.SUCCEEDED, detail=detail)

    @staticmethod
    def failure(error: Dict[str, Any]) -> "Outcome":
        return Outcome(status=ActionStatus.FAILED, error=error)
