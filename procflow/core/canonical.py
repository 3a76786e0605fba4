"""
Canonical serialization for deterministic hashing and storage.

All event, outcome and derived-state serialization goes through these
functions so identical values always produce identical bytes.
"""

import json
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


def canonicalize(obj: Any) -> Any:
    """
    Convert arbitrary nested values to canonical JSON-ready form.

    Rules:
    - mapping keys sorted alphabetically
    - tuples and lists converted to lists
    - datetimes and dates rendered as ISO-8601 strings
    - enums replaced by their value
    - pydantic models dumped in JSON mode
    """
    if isinstance(obj, BaseModel):
        return canonicalize(obj.model_dump(mode="json"))
    if isinstance(obj, Mapping):
        return {str(k): canonicalize(obj[k]) for k in sorted(obj.keys(), key=str)}
    if isinstance(obj, (list, tuple)):
        return [canonicalize(x) for x in obj]
    if isinstance(obj, Enum):
        return canonicalize(obj.value)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


def canonical_json_bytes(obj: Any) -> bytes:
    """
    Deterministic JSON bytes for hashing.

    Returns:
        UTF-8 encoded JSON bytes, sorted keys, no whitespace
    """
    canon = canonicalize(obj)
    s = json.dumps(canon, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return s.encode("utf-8")


def canonical_json_str(obj: Any) -> str:
    """Deterministic JSON string (for display or storage)."""
    return canonical_json_bytes(obj).decode("utf-8")
