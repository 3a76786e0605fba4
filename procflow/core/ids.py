"""
Identifier generation.
"""

import hashlib
import uuid


def new_id() -> str:
    """Random opaque identifier for processes and events."""
    return uuid.uuid4().hex


def stable_id(*parts: str) -> str:
    """
    Generate stable ID derived from inputs (no randomness).

    Example:
        stable_id("evt-1", "send_email") -> "a3f2..."
    """
    raw = "|".join(parts).encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def action_key(event_id: str, action: str) -> str:
    """
    Idempotency key for one action on one event.

    Integrations receive it so downstream systems can deduplicate repeated
    deliveries (retries after a failure, forced re-execution).
    """
    return stable_id("action", event_id, action)
