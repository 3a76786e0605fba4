"""
Order status derivation.

Total over every attribute combination: the first matching rule wins and
anything unmatched is "pending".
"""

from procflow.core import Process, ReplayContext

STATUSES = (
    "pending",
    "payment_failed",
    "paid",
    "confirmed",
    "packaged",
    "in_transit",
    "delivered",
    "cancelled",
)


def derive_status(process: Process, context: ReplayContext) -> str:
    attrs = process.attributes
    if attrs.get("cancelled_at"):
        return "cancelled"
    if attrs.get("delivered_at"):
        return "delivered"
    if attrs.get("collected_at"):
        return "in_transit"
    if attrs.get("packaged_at"):
        return "packaged"
    if attrs.get("confirmed"):
        return "confirmed"
    if attrs.get("paid"):
        return "paid"
    if attrs.get("payment_failures"):
        return "payment_failed"
    return "pending"
