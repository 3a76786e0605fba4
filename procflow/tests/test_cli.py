"""
Tests for the procctl CLI.
"""

import json
import tempfile

from typer.testing import CliRunner

from procctl.main import app

runner = CliRunner()


def invoke(store_dir, *args):
    return runner.invoke(app, [*args, "--store", "file", "--path", store_dir])


def as_json(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def place_paid_order(store_dir):
    as_json(invoke(store_dir, "handle", "request_order", "-p", "order-1",
                   "-s", "email=ada@example.com", "-s", "total=100", "--json"))
    return as_json(invoke(store_dir, "handle", "record_payment", "-p", "order-1", "-s", "amount=100", "--json"))


def test_handle_and_inspect():
    with tempfile.TemporaryDirectory() as tmpdir:
        paid = place_paid_order(tmpdir)
        assert paid["status"] == "paid"
        assert paid["failed_actions"] == []

        shown = as_json(invoke(tmpdir, "process", "show", "order-1", "--json"))
        assert shown["status"] == "paid"
        assert shown["attributes"]["amount_paid_cents"] == 10000

        events = as_json(invoke(tmpdir, "process", "events", "order-1", "--json"))
        assert events["count"] == 2
        assert events["events"][1]["actions"][0]["name"] == "send_payment_success_email"
        assert events["events"][1]["actions"][0]["status"] == "succeeded"

        listed = as_json(invoke(tmpdir, "process", "list", "--json"))
        assert [p["id"] for p in listed["processes"]] == ["order-1"]

        verified = as_json(invoke(tmpdir, "process", "verify", "order-1", "--json"))
        assert verified == {"process_id": "order-1", "valid": True, "events": 2}


def test_handle_validation_error_exit_code():
    with tempfile.TemporaryDirectory() as tmpdir:
        place_paid_order(tmpdir)
        result = invoke(tmpdir, "handle", "mark_delivered", "-p", "order-1", "--json")

        assert result.exit_code == 1
        assert "not been collected" in json.loads(result.output)["error"]


def test_replay_and_point_in_time():
    with tempfile.TemporaryDirectory() as tmpdir:
        place_paid_order(tmpdir)
        events = as_json(invoke(tmpdir, "process", "events", "order-1", "--json"))["events"]

        full = as_json(invoke(tmpdir, "replay", "order-1", "--json"))
        assert full["status"] == "paid"
        assert full["executed"] == []
        assert full["persisted"] is True

        past = as_json(invoke(tmpdir, "replay", "order-1", "--as-of", events[0]["occurred_at"], "--json"))
        assert past["status"] == "pending"
        assert past["applied"] == 1
        assert past["persisted"] is False

        again = as_json(invoke(tmpdir, "replay", "order-1", "--json"))
        assert again["state_hash"] == full["state_hash"]


def test_force_and_remove():
    with tempfile.TemporaryDirectory() as tmpdir:
        place_paid_order(tmpdir)
        payment = as_json(invoke(tmpdir, "process", "events", "order-1", "--json"))["events"][1]

        forced = as_json(invoke(tmpdir, "process", "force", "order-1", payment["id"],
                                "send_payment_success_email", "-r", "bounced", "-a", "ops", "--json"))
        assert forced["outcome"] == "succeeded"

        removed = as_json(invoke(tmpdir, "process", "remove", "order-1", payment["id"],
                                 "-r", "test payment", "-a", "ops", "--json"))
        assert removed["status"] == "pending"

        corrections = as_json(invoke(tmpdir, "process", "corrections", "order-1", "--json"))
        assert corrections["corrections"][0]["event_id"] == payment["id"]


def test_reprocess():
    with tempfile.TemporaryDirectory() as tmpdir:
        place_paid_order(tmpdir)
        report = as_json(invoke(tmpdir, "reprocess", "--json"))
        assert report == {"rebuilt": ["order-1"], "flagged": {}, "failed_actions": 0}


def test_registry_and_version():
    registry = runner.invoke(app, ["registry", "--json"])
    assert registry.exit_code == 0
    data = json.loads(registry.output)
    assert data["kind"] == "order"
    assert len(data["handlers"]) == 9

    version = runner.invoke(app, ["version"])
    assert version.exit_code == 0
    assert "procctl" in version.output


def test_bad_store_option():
    result = runner.invoke(app, ["process", "list", "--store", "redis", "--json"])
    assert result.exit_code == 2
    assert "redis" in json.loads(result.output)["error"]
