"""
Action dispatch with per-action failure isolation and timeouts.
"""

from .dispatcher import ActionDispatcher, ExecutedAction, stable_error

__all__ = [
    "ActionDispatcher",
    "ExecutedAction",
    "stable_error",
]
