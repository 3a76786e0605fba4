"""
Tests for handler registry construction.

Critical: misconfiguration fails at startup, never during replay.
"""

import pytest

from fulfillment import OrderEvent, order_definition
from fulfillment.events import PaymentSucceeded
from procflow.core import HandlerConfigError, HandlerRegistry, Subscription, ValidationError


def noop(process, event, context):
    pass


def send(snapshot, event, context):
    return "ok"


def test_lookup_unregistered_returns_none():
    registry = HandlerRegistry()
    assert registry.lookup("NOTHING") is None
    assert registry.subscriptions("NOTHING") == ()


def test_enum_and_string_types_are_equivalent():
    registry = HandlerRegistry(event_types=OrderEvent)
    registry.register(OrderEvent.PAYMENT_SUCCEEDED, noop, [send])

    assert registry.is_registered("PAYMENT_SUCCEEDED")
    assert registry.lookup("PAYMENT_SUCCEEDED").action_names == ["send"]


def test_duplicate_event_type_rejected():
    registry = HandlerRegistry()
    registry.register("A", noop)
    with pytest.raises(HandlerConfigError):
        registry.register("A", noop)


def test_type_outside_enumeration_rejected():
    registry = HandlerRegistry(event_types=OrderEvent)
    with pytest.raises(HandlerConfigError):
        registry.register("TELEPORTED", noop)


def test_duplicate_action_on_one_type_rejected():
    registry = HandlerRegistry()
    with pytest.raises(HandlerConfigError):
        registry.register("A", noop, [send, Subscription("send", send)])


def test_non_callable_mutation_rejected():
    registry = HandlerRegistry()
    with pytest.raises(HandlerConfigError):
        registry.register("A", "not callable")


def test_malformed_subscription_rejected():
    registry = HandlerRegistry()
    with pytest.raises(HandlerConfigError):
        registry.register("A", noop, [(send,)])


def test_frozen_registry_rejects_registration():
    registry = HandlerRegistry().freeze()
    assert registry.frozen
    with pytest.raises(HandlerConfigError):
        registry.register("A", noop)


def test_same_action_may_serve_several_types():
    registry = HandlerRegistry()
    registry.register("A", noop, [send])
    registry.register("B", noop, [send])
    assert len(registry) == 2


def test_validate_payload():
    registry = HandlerRegistry()
    registry.register("PAID", noop, payload=PaymentSucceeded)

    assert registry.validate_payload("PAID", {"amount": "12.5", "extra": 1}) == {
        "amount": "12.5",
        "reference": "",
        "method": "card",
    }
    with pytest.raises(ValidationError) as exc:
        registry.validate_payload("PAID", {})
    assert exc.value.errors[0]["loc"] == "amount"
    assert registry.validate_payload("OTHER", {"x": 1}) == {"x": 1}


def test_order_registry_is_inspectable():
    """The order table can be read without running any business logic."""
    rows = {row["event_type"]: row for row in order_definition().registry.describe()}

    assert set(rows) == {e.value for e in OrderEvent}
    payment = rows["PAYMENT_SUCCEEDED"]
    assert payment["payload"] == "PaymentSucceeded"
    assert payment["subscriptions"] == [
        {
            "action": "send_payment_success_email",
            "conditions": ["has_email", "not_cancelled", "payment_covers_total"],
        }
    ]
    assert rows["COURIER_COLLECTED"]["subscriptions"] == []
    assert rows["ORDER_SUCCESS_EMAIL_SENT"]["subscriptions"] == []
