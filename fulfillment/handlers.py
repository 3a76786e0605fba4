"""
Build mutations for order events.

Mutations are pure: they read the event payload and write process
attributes (and replay-context scratch) only. No I/O.
"""

from procflow.core import Event, Process, ReplayContext

from .events import (
    CourierCollected,
    CustomerRequested,
    DeliveryDateChanged,
    OrderCancelled,
    OrderPackaged,
    PackageDelivered,
    PaymentFailed,
    PaymentSucceeded,
    to_cents,
)


def initial_attributes():
    return {
        "email": None,
        "customer_name": "",
        "items": [],
        "total_cents": 0,
        "currency": "EUR",
        "shipping_address": None,
        "requested_at": None,
        "amount_paid_cents": 0,
        "paid": False,
        "payment_reference": None,
        "payment_failures": 0,
        "last_payment_error": None,
        "confirmed": False,
        "packaged_at": None,
        "package_count": 0,
        "collected_at": None,
        "courier": None,
        "tracking_number": None,
        "delivery_date": None,
        "delivery_date_changes": 0,
        "delivered_at": None,
        "signed_by": None,
        "cancelled_at": None,
        "cancel_reason": None,
    }


def on_customer_requested(process: Process, event: Event, context: ReplayContext) -> None:
    data = CustomerRequested.of(event)
    process.attributes.update(
        {
            "email": data.email,
            "customer_name": data.customer_name,
            "items": [item.model_dump(mode="json") for item in data.items],
            "total_cents": to_cents(data.total),
            "currency": data.currency,
            "shipping_address": data.shipping_address,
            "requested_at": event.occurred_at.isoformat(),
        }
    )


def on_payment_succeeded(process: Process, event: Event, context: ReplayContext) -> None:
    data = PaymentSucceeded.of(event)
    attrs = process.attributes
    attrs["amount_paid_cents"] += to_cents(data.amount)
    attrs["payment_reference"] = data.reference or attrs["payment_reference"]
    attrs["paid"] = attrs["amount_paid_cents"] >= attrs["total_cents"]
    context.set("last_payment_event", event.id)


def on_payment_failed(process: Process, event: Event, context: ReplayContext) -> None:
    data = PaymentFailed.of(event)
    process.attributes["payment_failures"] += 1
    process.attributes["last_payment_error"] = data.reason or None


def on_order_success_email_sent(process: Process, event: Event, context: ReplayContext) -> None:
    # confirmation before payment is recorded but does not confirm
    if process.attributes["paid"]:
        process.attributes["confirmed"] = True
    else:
        context.mark("confirmation_before_payment")


def on_order_packaged(process: Process, event: Event, context: ReplayContext) -> None:
    data = OrderPackaged.of(event)
    process.attributes["packaged_at"] = event.occurred_at.isoformat()
    process.attributes["package_count"] = data.package_count


def on_courier_collected(process: Process, event: Event, context: ReplayContext) -> None:
    data = CourierCollected.of(event)
    process.attributes["collected_at"] = event.occurred_at.isoformat()
    process.attributes["courier"] = data.courier or None
    process.attributes["tracking_number"] = data.tracking_number


def on_delivery_date_changed(process: Process, event: Event, context: ReplayContext) -> None:
    data = DeliveryDateChanged.of(event)
    process.attributes["delivery_date"] = data.delivery_date.isoformat()
    process.attributes["delivery_date_changes"] += 1


def on_package_delivered(process: Process, event: Event, context: ReplayContext) -> None:
    data = PackageDelivered.of(event)
    process.attributes["delivered_at"] = event.occurred_at.isoformat()
    process.attributes["signed_by"] = data.signed_by


def on_order_cancelled(process: Process, event: Event, context: ReplayContext) -> None:
    data = OrderCancelled.of(event)
    process.attributes["cancelled_at"] = event.occurred_at.isoformat()
    process.attributes["cancel_reason"] = data.reason or None
