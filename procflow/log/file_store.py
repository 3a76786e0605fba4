"""
File-based process store.

Layout, one directory per process under the store root:

    <root>/<process_id>/process.json       process record (attributes, status, outcomes)
    <root>/<process_id>/events.jsonl       append-only hash chain records
    <root>/<process_id>/corrections.jsonl  audit entries of removed events

Appends hold an exclusive fcntl lock on events.jsonl and fsync before
returning. process.json is replaced atomically (temp file + os.replace), so
attributes and action outcomes are always written together.
"""

import json
import os
import tempfile
import threading
from typing import Any, Dict, List, Optional

from ..core.canonical import canonical_json_str
from ..core.errors import EventStoreError, ProcessNotFoundError
from ..core.events import Event
from ..core.process import Process
from .integrity import rechain
from .store import ProcessStore

try:
    import fcntl
except ImportError:  # Windows or unsupported platform
    fcntl = None


class FileProcessStore(ProcessStore):
    """
    File-based store.

    Guarantees:
    - Append-only event files (rewritten only by audited removal)
    - Fsync after each append and each record write
    - Hash chain per process
    """

    RECORD = "process.json"
    EVENTS = "events.jsonl"
    CORRECTIONS = "corrections.jsonl"

    def __init__(self, root: str, clock=None) -> None:
        """
        Initialize file store.

        Args:
            root: Directory holding one subdirectory per process
        """
        super().__init__(clock)
        self.root = root
        self._lock = threading.RLock()
        os.makedirs(root, exist_ok=True)

    def _dir(self, process_id: str) -> str:
        self._check_id(process_id)
        return os.path.join(self.root, process_id)

    def _path(self, process_id: str, name: str) -> str:
        return os.path.join(self._dir(process_id), name)

    def _atomic_write(self, path: str, data: str) -> None:
        directory = os.path.dirname(path)
        fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except OSError as ex:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise EventStoreError(str(ex)) from ex

    def _read_record(self, process_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(process_id, self.RECORD)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as ex:
            raise EventStoreError(f"cannot read {path}: {ex}") from ex

    def _write_record(self, record: Dict[str, Any]) -> None:
        self._atomic_write(self._path(record["id"], self.RECORD), canonical_json_str(record))

    def _read_lines(self, path: str) -> List[Dict[str, Any]]:
        try:
            with open(path, "rb") as f:
                return [json.loads(line) for line in f if line.strip()]
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as ex:
            raise EventStoreError(f"cannot read {path}: {ex}") from ex

    def _chain(self, process_id: str) -> List[Dict[str, Any]]:
        return self._read_lines(self._path(process_id, self.EVENTS))

    def create(self, kind: str, process_id: Optional[str] = None) -> Process:
        record = self._new_record(kind, process_id)
        directory = self._dir(record["id"])
        with self._lock:
            try:
                os.makedirs(directory)
            except FileExistsError:
                raise EventStoreError(f"process already exists: {record['id']}")
            except OSError as ex:
                raise EventStoreError(str(ex)) from ex
            with open(os.path.join(directory, self.EVENTS), "wb"):
                pass
            self._write_record(record)
        return self.load(record["id"])

    def append(self, process_id, event_type, payload, occurred_at=None) -> Event:
        if self._read_record(process_id) is None:
            raise ProcessNotFoundError(process_id)
        path = self._path(process_id, self.EVENTS)
        try:
            with self._lock, open(path, "a+b") as f:
                if fcntl:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                try:
                    f.seek(0)
                    last = None
                    for line in f:
                        if line.strip():
                            last = json.loads(line)
                    rec = self._next_chain_record(process_id, event_type, payload, occurred_at, last)
                    f.seek(0, os.SEEK_END)
                    f.write((canonical_json_str(rec) + "\n").encode("utf-8"))
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    if fcntl:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except OSError as ex:
            raise EventStoreError(str(ex)) from ex
        return Event.from_dict(rec["event"])

    def save(self, process: Process) -> None:
        with self._lock:
            self._write_record(self._record_from(process))

    def flag(self, process_id: str, reason: str) -> None:
        with self._lock:
            record = self._read_record(process_id)
            if record is None:
                raise ProcessNotFoundError(process_id)
            record["flagged"] = reason
            self._write_record(record)

    def ids(self, kind: Optional[str] = None) -> List[str]:
        out = []
        for name in sorted(os.listdir(self.root)):
            if not os.path.isfile(os.path.join(self.root, name, self.RECORD)):
                continue
            if kind is not None:
                record = self._read_record(name)
                if record is None or record.get("kind") != kind:
                    continue
            out.append(name)
        return out

    def remove(self, process_id: str, event_id: str, reason: str, actor: str) -> Event:
        with self._lock:
            record = self._read_record(process_id)
            if record is None:
                raise ProcessNotFoundError(process_id)
            chain = self._chain(process_id)
            target = next((r for r in chain if r["event"]["id"] == event_id), None)
            if target is None:
                raise EventStoreError(f"event {event_id} not found in process {process_id}")

            correction = self._correction(target["event"], reason, actor, self.clock.now())
            try:
                with open(self._path(process_id, self.CORRECTIONS), "a", encoding="utf-8") as f:
                    f.write(canonical_json_str(correction) + "\n")
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as ex:
                raise EventStoreError(str(ex)) from ex

            remaining = rechain(r["event"] for r in chain if r is not target)
            self._atomic_write(
                self._path(process_id, self.EVENTS),
                "".join(canonical_json_str(r) + "\n" for r in remaining),
            )
            record.get("outcomes", {}).pop(event_id, None)
            self._write_record(record)
            return Event.from_dict(target["event"])

    def corrections(self, process_id: str) -> List[Dict[str, Any]]:
        return self._read_lines(self._path(process_id, self.CORRECTIONS))
