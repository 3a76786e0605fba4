"""
The order process definition: event types, mutations and subscriptions.

Subscriptions are listed per event type in execution order. Events without
subscriptions only change state.
"""

from typing import Optional

from procflow.core import HandlerRegistry, ProcessDefinition, Subscription

from . import handlers
from .actions import FulfillmentActions
from .conditions import has_email, is_paid, not_cancelled, not_delivered, payment_covers_total
from .events import PAYLOADS, OrderEvent
from .integrations import Integrations
from .status import STATUSES, derive_status

KIND = "order"


def build_registry(actions: FulfillmentActions) -> HandlerRegistry:
    registry = HandlerRegistry(event_types=OrderEvent)

    def register(event_type, mutate, subscriptions=()):
        registry.register(event_type, mutate, subscriptions, payload=PAYLOADS[event_type])

    register(
        OrderEvent.CUSTOMER_REQUESTED,
        handlers.on_customer_requested,
        [(actions.send_order_received_email, [has_email])],
    )
    register(
        OrderEvent.PAYMENT_SUCCEEDED,
        handlers.on_payment_succeeded,
        [(actions.send_payment_success_email, [has_email, not_cancelled, payment_covers_total])],
    )
    register(
        OrderEvent.PAYMENT_FAILED,
        handlers.on_payment_failed,
        [(actions.send_payment_failed_email, [has_email])],
    )
    register(OrderEvent.ORDER_SUCCESS_EMAIL_SENT, handlers.on_order_success_email_sent)
    register(
        OrderEvent.ORDER_PACKAGED,
        handlers.on_order_packaged,
        [(actions.request_courier_pickup, [is_paid, not_cancelled])],
    )
    register(OrderEvent.COURIER_COLLECTED, handlers.on_courier_collected)
    register(
        OrderEvent.DELIVERY_DATE_CHANGED,
        handlers.on_delivery_date_changed,
        [(actions.send_delivery_date_changed_email, [has_email, not_delivered])],
    )
    register(
        OrderEvent.PACKAGE_DELIVERED,
        handlers.on_package_delivered,
        [(actions.send_delivery_confirmation_email, [has_email])],
    )
    register(
        OrderEvent.ORDER_CANCELLED,
        handlers.on_order_cancelled,
        [Subscription("refund_payment", actions.refund_payment, (is_paid,))],
    )
    return registry.freeze()


def order_definition(integrations: Optional[Integrations] = None) -> ProcessDefinition:
    actions = FulfillmentActions(integrations or Integrations())
    return ProcessDefinition(
        kind=KIND,
        registry=build_registry(actions),
        initial_attributes=handlers.initial_attributes,
        derive_status=derive_status,
        statuses=STATUSES,
    )
