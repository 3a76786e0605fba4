"""
Tests for the command layer: validation happens before anything is appended.
"""

import pytest

from fulfillment import OrderEvent, build_app
from procflow.command import Command
from procflow.config import Settings
from procflow.core import HandlerConfigError, ManualClock, ValidationError


def make_app():
    return build_app(Settings(store="memory", action_timeout=0), clock=ManualClock())


def new_order(app, pid="order-1"):
    return app.commands.handle("request_order", {"process_id": pid, "email": "ada@example.com", "total": 100})


def event_count(app, pid):
    return len(list(app.store.read(pid)))


def test_request_order_creates_process():
    app = make_app()

    result = new_order(app)

    assert result.process_id == "order-1"
    assert result.status == "pending"
    events = list(app.store.read("order-1"))
    assert [ev.id for ev in events] == [result.event_id]
    assert events[0].payload["total"] == "100"
    assert events[0].payload["currency"] == "EUR"


def test_request_order_generates_id():
    app = make_app()

    result = app.commands.handle("request_order", {"total": 10})

    assert app.store.exists(result.process_id)


def test_request_order_rejects_existing_id():
    app = make_app()
    new_order(app)

    with pytest.raises(ValidationError):
        new_order(app)
    assert event_count(app, "order-1") == 1


def test_unknown_command():
    app = make_app()
    with pytest.raises(ValidationError):
        app.commands.handle("teleport_order", {"process_id": "order-1"})


def test_missing_or_invalid_process():
    app = make_app()

    with pytest.raises(ValidationError):
        app.commands.handle("record_payment", {"process_id": "nope", "amount": 10})
    with pytest.raises(ValidationError):
        app.commands.handle("record_payment", {"amount": 10})
    with pytest.raises(ValidationError):
        app.commands.handle("record_payment", {"process_id": "../etc", "amount": 10})


def test_invalid_payload_appends_nothing():
    """Payload validation errors carry per-field detail and leave the log untouched."""
    app = make_app()
    new_order(app)

    with pytest.raises(ValidationError) as exc:
        app.commands.handle("record_payment", {"process_id": "order-1", "amount": -5})

    assert exc.value.errors[0]["loc"] == "amount"
    assert event_count(app, "order-1") == 1


def test_precondition_appends_nothing():
    """Business preconditions are checked against current state."""
    app = make_app()
    new_order(app)

    with pytest.raises(ValidationError) as exc:
        app.commands.handle("mark_packaged", {"process_id": "order-1"})

    assert "not paid" in exc.value.message
    assert event_count(app, "order-1") == 1


def test_command_flow_to_delivery():
    app = make_app()
    new_order(app)
    for name, params in [
        ("record_payment", {"amount": 100}),
        ("confirm_success_email", {}),
        ("mark_packaged", {"package_count": 2}),
        ("record_collection", {"courier": "dhl", "tracking_number": "T1"}),
        ("mark_delivered", {"signed_by": "Ada"}),
    ]:
        result = app.commands.handle(name, dict(params, process_id="order-1"))

    assert result.status == "delivered"
    with pytest.raises(ValidationError):
        app.commands.handle("cancel_order", {"process_id": "order-1"})


def test_failed_actions_reported():
    app = make_app()
    new_order(app)
    app.integrations.email.fail_with("smtp down")

    result = app.commands.handle("record_payment", {"process_id": "order-1", "amount": 100})

    assert result.status == "paid"
    assert result.failed_actions == ("send_payment_success_email",)


def test_flagged_process_rejects_commands():
    app = make_app()
    new_order(app)
    app.store.flag("order-1", "manual hold")

    with pytest.raises(ValidationError):
        app.commands.handle("record_payment", {"process_id": "order-1", "amount": 100})
    assert event_count(app, "order-1") == 1


def test_registration_errors():
    app = make_app()

    with pytest.raises(HandlerConfigError):
        app.commands.register(Command("request_order", OrderEvent.CUSTOMER_REQUESTED, "order", creates=True))
    with pytest.raises(HandlerConfigError):
        app.commands.register(Command("tick", "TICK", "order"))
    with pytest.raises(HandlerConfigError):
        app.commands.register(Command("bill", OrderEvent.PAYMENT_SUCCEEDED, "invoice"))
