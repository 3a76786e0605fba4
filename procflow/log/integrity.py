"""
Hash chain integrity for per-process event logs.

Every stored event carries the hash of its predecessor, making silent edits
to history detectable. Audited removals rechain the remaining events and
leave a correction record.
"""

import hashlib
from typing import Any, Dict, Iterable, List

from ..core.canonical import canonical_json_bytes
from ..core.errors import IntegrityError

ZERO_HASH = "0" * 64


def hash_event(prev_hash: str, event_data: Dict[str, Any]) -> str:
    """
    Compute hash of an event chained to the previous hash.

    Hash input: prev_hash + canonical_json(event_data)

    Args:
        prev_hash: Hash of previous event (or ZERO_HASH for the first)
        event_data: Immutable event fields (Event.to_dict())

    Returns:
        SHA-256 hash as hex string
    """
    b = prev_hash.encode("utf-8") + canonical_json_bytes(event_data)
    return hashlib.sha256(b).hexdigest()


def chain_record(prev_hash: str, event_data: Dict[str, Any]) -> Dict[str, Any]:
    """Storage record: {prev_hash, event_hash, event}."""
    return {
        "prev_hash": prev_hash,
        "event_hash": hash_event(prev_hash, event_data),
        "event": event_data,
    }


def rechain(events: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Build a fresh chain over event dicts (used after an audited removal)."""
    records = []
    prev = ZERO_HASH
    for data in events:
        rec = chain_record(prev, data)
        records.append(rec)
        prev = rec["event_hash"]
    return records


def verify_chain(records: Iterable[Dict[str, Any]]) -> int:
    """
    Verify a chain of storage records.

    Returns:
        Number of verified records

    Raises:
        IntegrityError: On the first broken link or mismatched hash
    """
    prev = ZERO_HASH
    count = 0
    for rec in records:
        ev = rec.get("event", {})
        if rec.get("prev_hash") != prev:
            raise IntegrityError(f"event {ev.get('id')} does not link to its predecessor")
        if hash_event(prev, ev) != rec.get("event_hash"):
            raise IntegrityError(f"event {ev.get('id')} hash mismatch")
        prev = rec["event_hash"]
        count += 1
    return count
