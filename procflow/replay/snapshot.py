"""
Deterministic derived-state hashing.

Same derived state always produces the same bytes, so two replays of an
unchanged event sequence can be compared byte for byte.
"""

import hashlib

from ..core.canonical import canonical_json_bytes
from ..core.process import Process


def serialize_state(process: Process) -> bytes:
    """Canonical bytes of the process's derived state (id, kind, attributes, status)."""
    return canonical_json_bytes(process.derived_state())


def compute_state_hash(process: Process) -> str:
    """SHA-256 hex digest of serialize_state()."""
    return hashlib.sha256(serialize_state(process)).hexdigest()
