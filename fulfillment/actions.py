"""
Order actions: one external effect each.

Actions receive a read-only snapshot, the triggering event and the replay
context, and hand the event's idempotency key to the integration so a
retried action never repeats an effect downstream.
"""

from typing import Any, Dict

from procflow.core import Event, ProcessSnapshot, ReplayContext, action_key

from .events import DeliveryDateChanged, PaymentFailed, PaymentSucceeded, from_cents
from .integrations import Integrations


def idempotency_key(event: Event, action: str) -> str:
    record = event.actions.get(action)
    return record.key if record is not None else action_key(event.id, action)


class FulfillmentActions:
    """
    Usage:
        actions = FulfillmentActions(Integrations())
        registry = build_registry(actions)
    """

    def __init__(self, integrations: Integrations) -> None:
        self.integrations = integrations

    def _mail(self, process: ProcessSnapshot, event: Event, action: str, template: str, **data: Any) -> Dict[str, Any]:
        data.setdefault("order_id", process.id)
        data.setdefault("customer_name", process.get("customer_name"))
        message_id = self.integrations.email.send(
            process.get("email"), template, data, idempotency_key(event, action)
        )
        return {"message_id": message_id, "template": template}

    def send_order_received_email(self, process: ProcessSnapshot, event: Event, context: ReplayContext):
        return self._mail(
            process, event, "send_order_received_email", "order_received",
            total=str(from_cents(process.get("total_cents", 0))), currency=process.get("currency"),
        )

    def send_payment_success_email(self, process: ProcessSnapshot, event: Event, context: ReplayContext):
        payment = PaymentSucceeded.of(event)
        return self._mail(
            process, event, "send_payment_success_email", "payment_success",
            amount=str(payment.amount), currency=process.get("currency"),
        )

    def send_payment_failed_email(self, process: ProcessSnapshot, event: Event, context: ReplayContext):
        failure = PaymentFailed.of(event)
        return self._mail(
            process, event, "send_payment_failed_email", "payment_failed",
            reason=failure.reason, retryable=failure.retryable,
        )

    def request_courier_pickup(self, process: ProcessSnapshot, event: Event, context: ReplayContext):
        pickup_id = self.integrations.courier.request_pickup(
            process.id,
            process.get("package_count", 1),
            process.get("shipping_address"),
            idempotency_key(event, "request_courier_pickup"),
        )
        return {"pickup_id": pickup_id}

    def send_delivery_date_changed_email(self, process: ProcessSnapshot, event: Event, context: ReplayContext):
        change = DeliveryDateChanged.of(event)
        return self._mail(
            process, event, "send_delivery_date_changed_email", "delivery_date_changed",
            delivery_date=change.delivery_date.isoformat(), reason=change.reason,
        )

    def send_delivery_confirmation_email(self, process: ProcessSnapshot, event: Event, context: ReplayContext):
        return self._mail(
            process, event, "send_delivery_confirmation_email", "delivery_confirmation",
            signed_by=process.get("signed_by"),
        )

    def refund_payment(self, process: ProcessSnapshot, event: Event, context: ReplayContext):
        amount = from_cents(process.get("amount_paid_cents", 0))
        refund_id = self.integrations.payments.refund(
            process.get("payment_reference"),
            amount,
            process.get("currency"),
            idempotency_key(event, "refund_payment"),
        )
        return {"refund_id": refund_id, "amount": str(amount)}
