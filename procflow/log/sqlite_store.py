"""
SQLite process store.

Tables follow the logical layout
processes(id, kind, attributes_json, status, flagged, created_at) and
events(id, process_id, event_type, payload_json, occurred_at, position,
action_outcomes_json, prev_hash, event_hash), plus corrections for the
audit trail of removed events. save() updates the process row and every
event's action outcomes in one transaction.
"""

import json
import sqlite3
import threading
from typing import Any, Dict, List, Optional

from ..core.canonical import canonical_json_str
from ..core.errors import EventStoreError, ProcessNotFoundError
from ..core.events import Event
from ..core.process import Process
from .integrity import rechain
from .store import ProcessStore

SCHEMA = """
CREATE TABLE IF NOT EXISTS processes (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    attributes_json TEXT NOT NULL DEFAULT '{}',
    status TEXT,
    flagged TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_processes_kind ON processes(kind);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    process_id TEXT NOT NULL REFERENCES processes(id),
    event_type TEXT NOT NULL,
    payload_json TEXT NOT NULL,
    occurred_at TEXT NOT NULL,
    position INTEGER NOT NULL,
    action_outcomes_json TEXT NOT NULL DEFAULT '[]',
    prev_hash TEXT NOT NULL,
    event_hash TEXT NOT NULL,
    UNIQUE (process_id, position)
);

CREATE INDEX IF NOT EXISTS idx_events_process ON events(process_id, position);

CREATE TABLE IF NOT EXISTS corrections (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    process_id TEXT NOT NULL REFERENCES processes(id),
    event_id TEXT NOT NULL,
    entry_json TEXT NOT NULL
);
"""


class SQLiteProcessStore(ProcessStore):
    def __init__(self, db_path: str, clock=None) -> None:
        super().__init__(clock)
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _init_schema(self) -> None:
        with self._lock, self.conn:
            self.conn.executescript(SCHEMA)
            self.conn.execute("PRAGMA foreign_keys=ON")

    def _read_record(self, process_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.conn.execute("SELECT * FROM processes WHERE id = ?", (process_id,)).fetchone()
            if row is None:
                return None
            outcome_rows = self.conn.execute(
                "SELECT id, action_outcomes_json FROM events WHERE process_id = ? ORDER BY position",
                (process_id,),
            ).fetchall()
        outcomes = {}
        for r in outcome_rows:
            recs = json.loads(r["action_outcomes_json"])
            if recs:
                outcomes[r["id"]] = recs
        return {
            "id": row["id"],
            "kind": row["kind"],
            "created_at": row["created_at"],
            "attributes": json.loads(row["attributes_json"]),
            "status": row["status"],
            "flagged": row["flagged"],
            "outcomes": outcomes,
        }

    def _chain(self, process_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM events WHERE process_id = ? ORDER BY position", (process_id,)
            ).fetchall()
        return [self._row_to_chain_record(r) for r in rows]

    @staticmethod
    def _row_to_chain_record(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "prev_hash": row["prev_hash"],
            "event_hash": row["event_hash"],
            "event": {
                "id": row["id"],
                "process_id": row["process_id"],
                "type": row["event_type"],
                "position": row["position"],
                "occurred_at": row["occurred_at"],
                "payload": json.loads(row["payload_json"]),
            },
        }

    def _insert_chain_record(self, rec: Dict[str, Any], outcomes: str = "[]") -> None:
        ev = rec["event"]
        self.conn.execute(
            """
            INSERT INTO events (id, process_id, event_type, payload_json, occurred_at, position,
                                action_outcomes_json, prev_hash, event_hash)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                ev["id"],
                ev["process_id"],
                ev["type"],
                canonical_json_str(ev["payload"]),
                ev["occurred_at"],
                ev["position"],
                outcomes,
                rec["prev_hash"],
                rec["event_hash"],
            ),
        )

    def create(self, kind: str, process_id: Optional[str] = None) -> Process:
        record = self._new_record(kind, process_id)
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(
                        "INSERT INTO processes (id, kind, attributes_json, status, flagged, created_at) "
                        "VALUES (?, ?, ?, NULL, NULL, ?)",
                        (record["id"], kind, "{}", record["created_at"]),
                    )
            except sqlite3.IntegrityError as ex:
                raise EventStoreError(f"process already exists: {record['id']}") from ex
        return self.load(record["id"])

    def append(self, process_id, event_type, payload, occurred_at=None) -> Event:
        with self._lock:
            if self.conn.execute("SELECT 1 FROM processes WHERE id = ?", (process_id,)).fetchone() is None:
                raise ProcessNotFoundError(process_id)
            row = self.conn.execute(
                "SELECT * FROM events WHERE process_id = ? ORDER BY position DESC LIMIT 1", (process_id,)
            ).fetchone()
            last = self._row_to_chain_record(row) if row is not None else None
            rec = self._next_chain_record(process_id, event_type, payload, occurred_at, last)
            try:
                with self.conn:
                    self._insert_chain_record(rec)
            except sqlite3.Error as ex:
                raise EventStoreError(str(ex)) from ex
        return Event.from_dict(rec["event"])

    def save(self, process: Process) -> None:
        with self._lock:
            record = self._record_from(process)
            try:
                with self.conn:
                    self.conn.execute(
                        "UPDATE processes SET attributes_json = ?, status = ?, flagged = ? WHERE id = ?",
                        (
                            canonical_json_str(record["attributes"]),
                            record["status"],
                            record["flagged"],
                            process.id,
                        ),
                    )
                    for ev in process.events:
                        self.conn.execute(
                            "UPDATE events SET action_outcomes_json = ? WHERE id = ? AND process_id = ?",
                            (canonical_json_str(ev.outcomes_to_list()), ev.id, process.id),
                        )
            except sqlite3.Error as ex:
                raise EventStoreError(str(ex)) from ex

    def flag(self, process_id: str, reason: str) -> None:
        with self._lock, self.conn:
            cur = self.conn.execute("UPDATE processes SET flagged = ? WHERE id = ?", (reason, process_id))
            if cur.rowcount == 0:
                raise ProcessNotFoundError(process_id)

    def ids(self, kind: Optional[str] = None) -> List[str]:
        with self._lock:
            if kind is None:
                rows = self.conn.execute("SELECT id FROM processes ORDER BY id").fetchall()
            else:
                rows = self.conn.execute(
                    "SELECT id FROM processes WHERE kind = ? ORDER BY id", (kind,)
                ).fetchall()
        return [r["id"] for r in rows]

    def remove(self, process_id: str, event_id: str, reason: str, actor: str) -> Event:
        with self._lock:
            if self._read_record(process_id) is None:
                raise ProcessNotFoundError(process_id)
            rows = self.conn.execute(
                "SELECT * FROM events WHERE process_id = ? ORDER BY position", (process_id,)
            ).fetchall()
            target = next((r for r in rows if r["id"] == event_id), None)
            if target is None:
                raise EventStoreError(f"event {event_id} not found in process {process_id}")

            kept = [r for r in rows if r["id"] != event_id]
            outcomes = {r["id"]: r["action_outcomes_json"] for r in kept}
            chain = rechain(self._row_to_chain_record(r)["event"] for r in kept)
            removed = self._row_to_chain_record(target)["event"]
            correction = self._correction(removed, reason, actor, self.clock.now())
            try:
                with self.conn:
                    self.conn.execute("DELETE FROM events WHERE process_id = ?", (process_id,))
                    for rec in chain:
                        self._insert_chain_record(rec, outcomes[rec["event"]["id"]])
                    self.conn.execute(
                        "INSERT INTO corrections (process_id, event_id, entry_json) VALUES (?, ?, ?)",
                        (process_id, event_id, canonical_json_str(correction)),
                    )
            except sqlite3.Error as ex:
                raise EventStoreError(str(ex)) from ex
            return Event.from_dict(removed)

    def corrections(self, process_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT entry_json FROM corrections WHERE process_id = ? ORDER BY seq", (process_id,)
            ).fetchall()
        return [json.loads(r["entry_json"]) for r in rows]
