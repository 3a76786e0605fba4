"""
Event-Sourced Process Engine

Long-running business processes recorded as append-only events, rebuilt by
deterministic replay, with idempotent side-effecting actions.
"""

__version__ = "0.1.0"
