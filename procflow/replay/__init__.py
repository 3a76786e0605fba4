"""
Replay system for deterministic process reconstruction.

Replay applies registered mutations to a process's events in append order,
marks and dispatches subscribed actions, and derives status.
"""

from .builder import Builder, BuildResult
from .runner import ReplayResult, rebuild_process, replay
from .snapshot import compute_state_hash, serialize_state

__all__ = [
    "Builder",
    "BuildResult",
    "ReplayResult",
    "rebuild_process",
    "replay",
    "compute_state_hash",
    "serialize_state",
]
