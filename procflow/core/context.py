"""
Replay context: process-scoped scratch state for a single replay pass.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, Optional


class ReplayContext:
    """
    Scratch key/value state shared by mutations, conditions and actions
    during one replay of one process.

    A fresh context is created for every pass and discarded afterwards; it
    is never persisted or shared across processes. While actions execute
    the context is read-only and writes raise RuntimeError.

    Usage:
        ctx = ReplayContext("order-1")
        ctx.mark("paid")
        ctx.flag("paid")  # True
    """

    def __init__(self, process_id: str, as_of: Optional[datetime] = None) -> None:
        self.process_id = process_id
        self.as_of = as_of
        self._values: Dict[str, Any] = {}
        self._readonly = False

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if self._readonly:
            raise RuntimeError(f"replay context is read-only (set {key!r})")
        self._values[key] = value

    def mark(self, key: str) -> None:
        """Set a boolean flag."""
        self.set(key, True)

    def flag(self, key: str) -> bool:
        return bool(self._values.get(key, False))

    def __contains__(self, key: str) -> bool:
        return key in self._values

    @property
    def read_only(self) -> bool:
        return self._readonly

    @contextmanager
    def frozen(self) -> Iterator["ReplayContext"]:
        previous = self._readonly
        self._readonly = True
        try:
            yield self
        finally:
            self._readonly = previous

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)
