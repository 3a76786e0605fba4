"""
Tests for the bundled stores: ordering, hash chains, outcomes and corrections.

Every test runs against the in-memory, file and SQLite backends.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest

from procflow.core import ActionStatus, EventStoreError, IntegrityError, ManualClock, ProcessNotFoundError
from procflow.core.events import ActionRecord
from procflow.log import FileProcessStore, InMemoryProcessStore, SQLiteProcessStore, ZERO_HASH

BACKENDS = ["memory", "file", "sqlite"]


@contextmanager
def open_store(backend, clock=None):
    clock = clock or ManualClock()
    with tempfile.TemporaryDirectory() as tmpdir:
        if backend == "memory":
            yield InMemoryProcessStore(clock=clock)
        elif backend == "file":
            yield FileProcessStore(os.path.join(tmpdir, "store"), clock=clock)
        else:
            store = SQLiteProcessStore(os.path.join(tmpdir, "procflow.db"), clock=clock)
            try:
                yield store
            finally:
                store.close()


@pytest.mark.parametrize("backend", BACKENDS)
def test_append_assigns_positions_and_timestamps(backend):
    """Positions count up from 0 and timestamps never decrease."""
    with open_store(backend) as store:
        store.create("order", "order-1")
        events = [store.append("order-1", "PING", {"i": i}) for i in range(3)]

        assert [ev.position for ev in events] == [0, 1, 2]
        assert events[0].occurred_at < events[1].occurred_at < events[2].occurred_at
        stored = list(store.read("order-1"))
        assert [ev.id for ev in stored] == [ev.id for ev in events]
        assert [dict(ev.payload) for ev in stored] == [{"i": 0}, {"i": 1}, {"i": 2}]


@pytest.mark.parametrize("backend", BACKENDS)
def test_explicit_earlier_timestamp_rejected(backend):
    """An explicit occurred_at before the last event is an error."""
    with open_store(backend) as store:
        store.create("order", "order-1")
        first = store.append("order-1", "PING", {})

        with pytest.raises(EventStoreError):
            store.append("order-1", "PING", {}, occurred_at=first.occurred_at - timedelta(seconds=1))


@pytest.mark.parametrize("backend", BACKENDS)
def test_clock_going_backwards_is_clamped(backend):
    """A clock that jumps back still yields non-decreasing timestamps."""
    clock = ManualClock()
    with open_store(backend, clock) as store:
        store.create("order", "order-1")
        first = store.append("order-1", "PING", {})
        clock.advance(timedelta(hours=-1))
        second = store.append("order-1", "PING", {})

        assert second.occurred_at == first.occurred_at


@pytest.mark.parametrize("backend", BACKENDS)
def test_unknown_process(backend):
    """Appending to or loading an unknown process fails."""
    with open_store(backend) as store:
        with pytest.raises(ProcessNotFoundError):
            store.append("nope", "PING", {})
        with pytest.raises(ProcessNotFoundError):
            store.load("nope")
        assert not store.exists("nope")


@pytest.mark.parametrize("backend", BACKENDS)
def test_duplicate_and_invalid_ids_rejected(backend):
    """Process ids are unique and must be path and URL safe."""
    with open_store(backend) as store:
        store.create("order", "order-1")
        with pytest.raises(EventStoreError):
            store.create("order", "order-1")
        with pytest.raises(EventStoreError):
            store.create("order", "../escape")


@pytest.mark.parametrize("backend", BACKENDS)
def test_hash_chain_verifies(backend):
    """Each stored event chains to its predecessor."""
    with open_store(backend) as store:
        store.create("order", "order-1")
        for i in range(4):
            store.append("order-1", "PING", {"i": i})

        chain = store._chain("order-1")
        assert chain[0]["prev_hash"] == ZERO_HASH
        for prev, cur in zip(chain, chain[1:]):
            assert cur["prev_hash"] == prev["event_hash"]
        assert store.verify("order-1") == 4


@pytest.mark.parametrize("backend", BACKENDS)
def test_save_persists_attributes_and_outcomes(backend):
    """save() writes derived state and action records together."""
    with open_store(backend) as store:
        store.create("order", "order-1")
        store.append("order-1", "PING", {})
        process = store.load("order-1")
        process.attributes = {"total": 100, "items": ["a"]}
        process.status = "paid"
        rec = ActionRecord(name="notify", key="k1")
        rec.status = ActionStatus.SUCCEEDED
        rec.attempts = 1
        rec.detail = {"message_id": "m1"}
        process.events[0].actions["notify"] = rec
        store.save(process)

        loaded = store.load("order-1")

        assert loaded.attributes == {"total": 100, "items": ["a"]}
        assert loaded.status == "paid"
        assert loaded.events[0].actions["notify"].status is ActionStatus.SUCCEEDED
        assert loaded.events[0].actions["notify"].detail == {"message_id": "m1"}
        # outcomes live outside the hash chain
        assert store.verify("order-1") == 1


@pytest.mark.parametrize("backend", BACKENDS)
def test_load_as_of_filters_events(backend):
    """Point-in-time loads only include events with occurred_at <= as_of."""
    with open_store(backend) as store:
        store.create("order", "order-1")
        events = [store.append("order-1", "PING", {"i": i}) for i in range(3)]

        cut = events[1].occurred_at + timedelta(milliseconds=500)
        loaded = store.load("order-1", as_of=cut)

        assert [ev.id for ev in loaded.events] == [events[0].id, events[1].id]
        assert len(store.load("order-1", as_of=events[0].occurred_at).events) == 1


@pytest.mark.parametrize("backend", BACKENDS)
def test_remove_rechains_and_audits(backend):
    """Removing an event leaves a verified chain and a correction entry."""
    with open_store(backend) as store:
        store.create("order", "order-1")
        events = [store.append("order-1", "PING", {"i": i}) for i in range(3)]

        removed = store.remove("order-1", events[1].id, reason="duplicate webhook", actor="ops")

        assert removed.id == events[1].id
        assert [ev.id for ev in store.read("order-1")] == [events[0].id, events[2].id]
        assert store.verify("order-1") == 2
        corrections = store.corrections("order-1")
        assert len(corrections) == 1
        assert corrections[0]["event_id"] == events[1].id
        assert corrections[0]["reason"] == "duplicate webhook"
        assert corrections[0]["actor"] == "ops"
        assert corrections[0]["payload"] == {"i": 1}

        nxt = store.append("order-1", "PING", {"i": 3})
        assert nxt.position == 3
        assert store.verify("order-1") == 3


@pytest.mark.parametrize("backend", BACKENDS)
def test_remove_unknown_event(backend):
    with open_store(backend) as store:
        store.create("order", "order-1")
        with pytest.raises(EventStoreError):
            store.remove("order-1", "missing", reason="x", actor="y")


@pytest.mark.parametrize("backend", BACKENDS)
def test_flag_and_ids(backend):
    """Flags persist; ids filter by kind."""
    with open_store(backend) as store:
        store.create("order", "b-order")
        store.create("order", "a-order")
        store.create("refund", "r-1")
        store.flag("a-order", "mutation failed")

        assert store.ids() == ["a-order", "b-order", "r-1"]
        assert store.ids("order") == ["a-order", "b-order"]
        assert store.load("a-order").flagged == "mutation failed"
        with pytest.raises(ProcessNotFoundError):
            store.flag("nope", "x")


def test_file_store_detects_tampering():
    """Editing a stored payload on disk breaks verification."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = FileProcessStore(tmpdir, clock=ManualClock())
        store.create("order", "order-1")
        store.append("order-1", "PAYMENT_SUCCEEDED", {"amount": 100})
        store.append("order-1", "PING", {})

        path = os.path.join(tmpdir, "order-1", "events.jsonl")
        with open(path, "r") as f:
            lines = f.readlines()
        rec = json.loads(lines[0])
        rec["event"]["payload"]["amount"] = 1
        lines[0] = json.dumps(rec) + "\n"
        with open(path, "w") as f:
            f.writelines(lines)

        with pytest.raises(IntegrityError):
            store.verify("order-1")


def test_file_store_survives_reopen():
    """A new store instance over the same directory sees everything."""
    with tempfile.TemporaryDirectory() as tmpdir:
        store = FileProcessStore(tmpdir, clock=ManualClock())
        store.create("order", "order-1")
        ev = store.append("order-1", "PING", {"x": 1})

        reopened = FileProcessStore(tmpdir)
        loaded = reopened.load("order-1")

        assert loaded.events[0].id == ev.id
        assert loaded.events[0].occurred_at == datetime(2024, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
