"""
Order status workflow used by the vendor order list.

    pending -> confirmed -> in-progress -> completed
       \\           \\             \\
        +-----------+-------------+--> cancelled

completed and cancelled are terminal.
"""

from __future__ import annotations

import dataclasses
from typing import Iterable, List, Optional, Set

from db.models import Order
from rental.errors import InvalidTransitionError

PENDING = "pending"
CONFIRMED = "confirmed"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"
CANCELLED = "cancelled"

STATUS_FLOW = (PENDING, CONFIRMED, IN_PROGRESS, COMPLETED)
ALL_STATUSES = STATUS_FLOW + (CANCELLED,)
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})

STATUS_LABELS = {
    PENDING: "Pending",
    CONFIRMED: "Confirmed",
    IN_PROGRESS: "In Progress",
    COMPLETED: "Completed",
    CANCELLED: "Cancelled",
}

# label of the button that moves an order to its next status
ADVANCE_LABELS = {
    PENDING: "Confirm Order",
    CONFIRMED: "Start Processing",
    IN_PROGRESS: "Mark as Completed",
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def next_status(status: str) -> Optional[str]:
    """The status after this one in the normal flow, None at the end."""
    if status not in STATUS_FLOW or is_terminal(status):
        return None
    return STATUS_FLOW[STATUS_FLOW.index(status) + 1]


def allowed_transitions(status: str, strict: bool = True) -> Set[str]:
    if status not in ALL_STATUSES or is_terminal(status):
        return set()
    if not strict:
        return set(ALL_STATUSES) - {status}
    return {next_status(status), CANCELLED}


def can_transition(current: str, new: str, strict: bool = True) -> bool:
    return new in allowed_transitions(current, strict)


def change_status(order: Order, new_status: str, strict: bool = True) -> Order:
    """
    Move an order to new_status.

    strict=True only allows the immediate next status or a cancellation;
    strict=False lets a non-terminal order jump to any other status.
    Raises InvalidTransitionError otherwise.
    """
    if not can_transition(order.status, new_status, strict):
        raise InvalidTransitionError(
            order.status, new_status, subject=f"Order {order.order_number}"
        )
    return dataclasses.replace(order, status=new_status)


def filter_orders(
    orders: Iterable[Order], search: str = "", status: str = "all"
) -> List[Order]:
    """Case-insensitive search on order number, customer and product names."""
    term = (search or "").strip().lower()

    def matches(order: Order) -> bool:
        if status != "all" and order.status != status:
            return False
        if not term:
            return True
        return (
            term in order.order_number.lower()
            or term in order.customer_name.lower()
            or any(term in item.product_name.lower() for item in order.items)
        )

    return [o for o in orders if matches(o)]
