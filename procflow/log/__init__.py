"""
Event storage, process persistence and integrity verification.

This module provides:
- EventStore / ProcessRepository: interfaces consumed by the engine
- InMemoryProcessStore: serialized in-memory backend (tests, demos)
- FileProcessStore: per-process directories with JSONL hash chains
- SQLiteProcessStore: relational backend (processes / events tables)
- Integrity: hash chain helpers
"""

from .store import EventStore, ProcessRepository, ProcessStore, valid_process_id
from .memory_store import InMemoryProcessStore
from .file_store import FileProcessStore
from .sqlite_store import SQLiteProcessStore
from .integrity import ZERO_HASH, chain_record, hash_event, verify_chain

__all__ = [
    "EventStore",
    "ProcessRepository",
    "ProcessStore",
    "valid_process_id",
    "InMemoryProcessStore",
    "FileProcessStore",
    "SQLiteProcessStore",
    "ZERO_HASH",
    "chain_record",
    "hash_event",
    "verify_chain",
]
