"""
Action conditions. Pure predicates over the post-mutation snapshot.
"""

from procflow.core import Event, ProcessSnapshot, ReplayContext


def has_email(process: ProcessSnapshot, event: Event, context: ReplayContext) -> bool:
    return bool(process.get("email"))


def is_paid(process: ProcessSnapshot, event: Event, context: ReplayContext) -> bool:
    return bool(process.get("paid"))


def not_cancelled(process: ProcessSnapshot, event: Event, context: ReplayContext) -> bool:
    return not process.get("cancelled_at")


def not_delivered(process: ProcessSnapshot, event: Event, context: ReplayContext) -> bool:
    return not process.get("delivered_at")


def payment_covers_total(process: ProcessSnapshot, event: Event, context: ReplayContext) -> bool:
    return process.get("amount_paid_cents", 0) >= process.get("total_cents", 0)
