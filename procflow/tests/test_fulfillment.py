"""
End-to-end tests of the order fulfillment process.
"""

from datetime import timedelta

import pytest

from fulfillment import OrderEvent, build_app
from fulfillment.events import CustomerRequested
from procflow.config import Settings
from procflow.core import ActionStatus, ManualClock, ValidationError
from procflow.replay import compute_state_hash

E = OrderEvent


def make_app():
    return build_app(Settings(store="memory", action_timeout=0), clock=ManualClock())


def place_order(app, pid="order-1", total=100, email="ada@example.com"):
    app.runtime.create("order", pid)
    return app.runtime.append(pid, E.CUSTOMER_REQUESTED, {"email": email, "total": total})


def test_delivered_order_scenario():
    """A full happy path replays to delivered with one payment email."""
    app = make_app()
    place_order(app)
    app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 100})
    app.runtime.append("order-1", E.ORDER_PACKAGED, {})
    app.runtime.append("order-1", E.COURIER_COLLECTED, {"courier": "dhl"})
    _, result = app.runtime.append("order-1", E.PACKAGE_DELIVERED, {})

    assert result.status == "delivered"
    process = app.store.load("order-1")
    assert process.status == "delivered"
    by_type = {ev.type: ev for ev in process.events}

    payment = by_type["PAYMENT_SUCCEEDED"]
    assert list(payment.actions) == ["send_payment_success_email"]
    assert payment.actions["send_payment_success_email"].status is ActionStatus.SUCCEEDED
    assert by_type["COURIER_COLLECTED"].actions == {}
    assert by_type["ORDER_PACKAGED"].actions["request_courier_pickup"].status is ActionStatus.SUCCEEDED
    assert len(app.integrations.email.sent("payment_success")) == 1
    assert len(app.integrations.courier.calls) == 1


def test_failed_payment_email_recovers_on_replay():
    """A failing email stays pending with error detail and succeeds after the fix."""
    app = make_app()
    place_order(app)
    app.integrations.email.fail_with("smtp unavailable")

    payment, _ = app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 100})

    record = app.store.load("order-1").event(payment.id).actions["send_payment_success_email"]
    assert record.status is ActionStatus.FAILED
    assert record.is_pending
    assert record.error["code"] == "EMAIL_FAILED"
    assert record.error["message"] == "smtp unavailable"

    app.integrations.email.heal()
    result = app.runtime.rebuild("order-1")

    event = app.store.load("order-1").event(payment.id)
    assert list(event.actions) == ["send_payment_success_email"]
    record = event.actions["send_payment_success_email"]
    assert record.status is ActionStatus.SUCCEEDED
    assert record.attempts == 2
    assert record.error is None
    assert [ex.action for ex in result.executed] == ["send_payment_success_email"]
    assert len(app.integrations.email.sent("payment_success")) == 1


def test_confirmation_depends_on_event_order():
    """The success email only confirms an order that was already paid."""
    app = make_app()
    place_order(app, "paid-first")
    app.runtime.append("paid-first", E.PAYMENT_SUCCEEDED, {"amount": 100})
    _, paid_first = app.runtime.append("paid-first", E.ORDER_SUCCESS_EMAIL_SENT, {})

    place_order(app, "email-first")
    app.runtime.append("email-first", E.ORDER_SUCCESS_EMAIL_SENT, {})
    _, email_first = app.runtime.append("email-first", E.PAYMENT_SUCCEEDED, {"amount": 100})

    assert paid_first.status == "confirmed"
    assert email_first.status == "paid"


def test_partial_payment_does_not_send_success_email():
    """The payment email waits until payments cover the order total."""
    app = make_app()
    place_order(app, total=100)

    partial, result = app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 40})
    assert result.status == "pending"
    assert app.store.load("order-1").event(partial.id).actions == {}

    rest, result = app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 60})
    assert result.status == "paid"
    assert list(app.store.load("order-1").event(rest.id).actions) == ["send_payment_success_email"]


def test_order_without_email_sends_nothing():
    app = make_app()
    place_order(app, email=None)
    app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 100})

    assert app.integrations.email.calls == []
    assert all(ev.actions == {} for ev in app.store.load("order-1").events)


def test_cancelling_paid_order_refunds():
    """Cancellation refunds once, using the stable idempotency key."""
    app = make_app()
    place_order(app)
    app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 100, "reference": "pay-9"})
    cancel, result = app.runtime.append("order-1", E.ORDER_CANCELLED, {"reason": "changed mind"})
    app.runtime.rebuild("order-1")

    assert result.status == "cancelled"
    calls = app.integrations.payments.calls
    assert len(calls) == 1
    assert calls[0]["reference"] == "pay-9"
    assert calls[0]["amount"] == 100
    record = app.store.load("order-1").event(cancel.id).actions["refund_payment"]
    assert calls[0]["key"] == record.key


def test_payment_failure_then_success():
    app = make_app()
    place_order(app)

    _, failed = app.runtime.append("order-1", E.PAYMENT_FAILED, {"reason": "insufficient funds"})
    assert failed.status == "payment_failed"
    assert len(app.integrations.email.sent("payment_failed")) == 1

    _, paid = app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 100})
    assert paid.status == "paid"


def test_delivery_date_change_after_delivery_sends_no_email():
    app = make_app()
    place_order(app)
    for event_type, payload in [
        (E.PAYMENT_SUCCEEDED, {"amount": 100}),
        (E.DELIVERY_DATE_CHANGED, {"delivery_date": "2024-02-01"}),
        (E.ORDER_PACKAGED, {}),
        (E.COURIER_COLLECTED, {}),
        (E.PACKAGE_DELIVERED, {"signed_by": "Ada"}),
        (E.DELIVERY_DATE_CHANGED, {"delivery_date": "2024-02-03"}),
    ]:
        app.runtime.append("order-1", event_type, payload)

    process = app.store.load("order-1")
    changes = [ev for ev in process.events if ev.type == "DELIVERY_DATE_CHANGED"]
    assert list(changes[0].actions) == ["send_delivery_date_changed_email"]
    assert changes[1].actions == {}
    assert process.attributes["delivery_date"] == "2024-02-03"
    assert process.attributes["delivery_date_changes"] == 2
    assert process.status == "delivered"


def test_point_in_time_state():
    """state_at reproduces the state between two events, read-only."""
    app = make_app()
    place_order(app)
    paid, _ = app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 100})
    app.runtime.append("order-1", E.ORDER_PACKAGED, {})
    emails_before = len(app.integrations.email.calls)

    result = app.runtime.state_at("order-1", paid.occurred_at + timedelta(milliseconds=500))

    assert result.status == "paid"
    assert result.applied == 2
    assert result.persisted is False
    assert result.executed == []
    assert len(app.integrations.email.calls) == emails_before
    assert app.store.load("order-1").status == "packaged"


def test_replay_after_restart_is_byte_identical():
    """Rebuilding a stored order yields the same state hash every time."""
    app = make_app()
    place_order(app)
    app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 100})
    first = compute_state_hash(app.runtime.rebuild("order-1").process)
    second = compute_state_hash(app.runtime.rebuild("order-1").process)

    assert first == second


def test_old_payloads_are_backfilled():
    """Fields added later parse from old events with their documented defaults."""
    app = make_app()
    app.runtime.create("order", "legacy-1")
    # written before currency, shipping_address and decimal amounts existed
    ev = app.store.append("legacy-1", E.CUSTOMER_REQUESTED, {"email": "x@example.com", "total": 19.99})
    app.runtime.rebuild("legacy-1")

    assert CustomerRequested.of(ev).currency == "EUR"
    assert app.store.load("legacy-1").attributes["currency"] == "EUR"
    assert app.store.load("legacy-1").attributes["shipping_address"] is None
    assert app.store.load("legacy-1").attributes["total_cents"] == 1999


def test_partial_payments_add_up_to_the_cent():
    """Amounts are exact: 0.70 + 0.10 covers a 0.80 total."""
    app = make_app()
    place_order(app, total="0.80")
    app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": 0.7})
    last, result = app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": "0.10"})

    assert result.status == "paid"
    assert result.process.attributes["amount_paid_cents"] == 80
    assert list(app.store.load("order-1").event(last.id).actions) == ["send_payment_success_email"]
    assert app.integrations.email.sent("payment_success")[0]["data"]["amount"] == "0.10"


def test_amounts_with_fractions_of_a_cent_are_rejected():
    app = make_app()
    place_order(app)

    with pytest.raises(ValidationError):
        app.runtime.append("order-1", E.PAYMENT_SUCCEEDED, {"amount": "10.005"})
