"""
Order event types and their payload records.

Every event type has exactly one payload record. Fields added after an
event type first shipped carry a default, which is the value older stored
events are read with:

    CUSTOMER_REQUESTED      currency="EUR", shipping_address=None
    PAYMENT_SUCCEEDED       method="card"
    PAYMENT_FAILED          retryable=True
    ORDER_PACKAGED          weight_kg=None
    COURIER_COLLECTED       tracking_number=None
    DELIVERY_DATE_CHANGED   reason=""
    PACKAGE_DELIVERED       signed_by=None
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Type

from pydantic import BeforeValidator, Field

from procflow.core import EventPayload


def _money_input(value: Any) -> Any:
    # floats from older JSON payloads are read by their shortest repr, not their binary value
    return str(value) if isinstance(value, float) else value


# Amounts in payloads: exact decimals with at most two places, stored as JSON strings
Money = Annotated[Decimal, BeforeValidator(_money_input), Field(decimal_places=2)]


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


def from_cents(cents: int) -> Decimal:
    return Decimal(cents).scaleb(-2)


class OrderEvent(str, Enum):
    CUSTOMER_REQUESTED = "CUSTOMER_REQUESTED"
    PAYMENT_SUCCEEDED = "PAYMENT_SUCCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    ORDER_SUCCESS_EMAIL_SENT = "ORDER_SUCCESS_EMAIL_SENT"
    ORDER_PACKAGED = "ORDER_PACKAGED"
    COURIER_COLLECTED = "COURIER_COLLECTED"
    DELIVERY_DATE_CHANGED = "DELIVERY_DATE_CHANGED"
    PACKAGE_DELIVERED = "PACKAGE_DELIVERED"
    ORDER_CANCELLED = "ORDER_CANCELLED"


class OrderItem(EventPayload):
    sku: str
    quantity: int = Field(default=1, ge=1)
    unit_price: Money = Field(default=Decimal("0"), ge=0)


class CustomerRequested(EventPayload):
    """A customer placed the order."""

    email: Optional[str] = None
    customer_name: str = ""
    items: List[OrderItem] = Field(default_factory=list)
    total: Money = Field(default=Decimal("0"), ge=0)
    currency: str = "EUR"
    shipping_address: Optional[str] = None


class PaymentSucceeded(EventPayload):
    """The payment provider confirmed a payment."""

    amount: Money = Field(gt=0)
    reference: str = ""
    method: str = "card"


class PaymentFailed(EventPayload):
    reason: str = ""
    reference: str = ""
    retryable: bool = True


class OrderSuccessEmailSent(EventPayload):
    """The order confirmation mail went out (reported by the mail provider)."""

    message_id: Optional[str] = None


class OrderPackaged(EventPayload):
    package_count: int = Field(default=1, ge=1)
    weight_kg: Optional[float] = Field(default=None, gt=0)


class CourierCollected(EventPayload):
    courier: str = ""
    tracking_number: Optional[str] = None


class DeliveryDateChanged(EventPayload):
    delivery_date: date
    reason: str = ""


class PackageDelivered(EventPayload):
    signed_by: Optional[str] = None


class OrderCancelled(EventPayload):
    reason: str = ""


PAYLOADS: Dict[OrderEvent, Type[EventPayload]] = {
    OrderEvent.CUSTOMER_REQUESTED: CustomerRequested,
    OrderEvent.PAYMENT_SUCCEEDED: PaymentSucceeded,
    OrderEvent.PAYMENT_FAILED: PaymentFailed,
    OrderEvent.ORDER_SUCCESS_EMAIL_SENT: OrderSuccessEmailSent,
    OrderEvent.ORDER_PACKAGED: OrderPackaged,
    OrderEvent.COURIER_COLLECTED: CourierCollected,
    OrderEvent.DELIVERY_DATE_CHANGED: DeliveryDateChanged,
    OrderEvent.PACKAGE_DELIVERED: PackageDelivered,
    OrderEvent.ORDER_CANCELLED: OrderCancelled,
}
