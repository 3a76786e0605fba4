"""
Order commands.

Preconditions reject requests that make no business sense against the
order's current state; they never mutate anything.
"""

from typing import Any, Dict, List, Optional

from procflow.command import Command
from procflow.core import Process

from .definition import KIND
from .events import OrderEvent


def _not_cancelled(process: Optional[Process], payload: Dict[str, Any]) -> Optional[str]:
    if process is not None and process.get("cancelled_at"):
        return "order is cancelled"
    return None


def _not_delivered(process: Optional[Process], payload: Dict[str, Any]) -> Optional[str]:
    if process is not None and process.get("delivered_at"):
        return "order is already delivered"
    return None


def _not_paid(process: Optional[Process], payload: Dict[str, Any]) -> Optional[str]:
    if process is not None and process.get("paid"):
        return "order is already paid"
    return None


def _paid(process: Optional[Process], payload: Dict[str, Any]) -> Optional[str]:
    if process is None or not process.get("paid"):
        return "order is not paid"
    return None


def _packaged(process: Optional[Process], payload: Dict[str, Any]) -> Optional[str]:
    if process is None or not process.get("packaged_at"):
        return "order is not packaged"
    return None


def _collected(process: Optional[Process], payload: Dict[str, Any]) -> Optional[str]:
    if process is None or not process.get("collected_at"):
        return "order has not been collected by a courier"
    return None


def order_commands() -> List[Command]:
    return [
        Command("request_order", OrderEvent.CUSTOMER_REQUESTED, KIND, creates=True),
        Command("record_payment", OrderEvent.PAYMENT_SUCCEEDED, KIND, preconditions=(_not_cancelled,)),
        Command(
            "record_payment_failure",
            OrderEvent.PAYMENT_FAILED,
            KIND,
            preconditions=(_not_cancelled, _not_paid),
        ),
        Command("confirm_success_email", OrderEvent.ORDER_SUCCESS_EMAIL_SENT, KIND, preconditions=(_paid,)),
        Command("mark_packaged", OrderEvent.ORDER_PACKAGED, KIND, preconditions=(_not_cancelled, _paid)),
        Command("record_collection", OrderEvent.COURIER_COLLECTED, KIND, preconditions=(_not_cancelled, _packaged)),
        Command(
            "change_delivery_date",
            OrderEvent.DELIVERY_DATE_CHANGED,
            KIND,
            preconditions=(_not_cancelled, _not_delivered),
        ),
        Command("mark_delivered", OrderEvent.PACKAGE_DELIVERED, KIND, preconditions=(_collected, _not_delivered)),
        Command("cancel_order", OrderEvent.ORDER_CANCELLED, KIND, preconditions=(_not_cancelled, _not_delivered)),
    ]
