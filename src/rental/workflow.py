"""
Rental order workflow.

    quotation --send--> quotation-sent --confirm--> rental-order
        \\                    |                          |
         +------cancel-------+-----------cancel---------+--> cancelled

Once an order reaches rental-order its prices and lines are frozen; a
cancelled order accepts nothing at all. Every function takes an order and
returns a new one, the input is never modified.
"""

from __future__ import annotations

import dataclasses
import random
import time
from typing import Dict, Iterable, Optional, Tuple

from db.models import OrderLine, RentalOrder
from rental.errors import (
    InvalidTransitionError,
    LastOrderLineError,
    PermissionDeniedError,
    ValidationError,
)

QUOTATION = "quotation"
QUOTATION_SENT = "quotation-sent"
RENTAL_ORDER = "rental-order"
CANCELLED = "cancelled"

STAGES = (QUOTATION, QUOTATION_SENT, RENTAL_ORDER)
STAGE_LABELS = {
    QUOTATION: "Quotation",
    QUOTATION_SENT: "Quotation sent",
    RENTAL_ORDER: "Rental Order",
    CANCELLED: "Cancelled",
}

PRICE_LISTS: Dict[str, float] = {
    "standard": 1.0,
    "premium": 1.5,
    "bulk": 0.8,
}

_ACTIONS = {
    QUOTATION: ("save", "send", "print", "cancel"),
    QUOTATION_SENT: ("confirm", "print", "cancel"),
    RENTAL_ORDER: ("print", "export", "cancel"),
    CANCELLED: ("print",),
}

# stages a stored order may move on to
_MOVES = {
    QUOTATION: (QUOTATION_SENT, CANCELLED),
    QUOTATION_SENT: (RENTAL_ORDER, CANCELLED),
    RENTAL_ORDER: (CANCELLED,),
    CANCELLED: (),
}

# stages in which prices and lines can still change
_EDITABLE_STAGES = (QUOTATION, QUOTATION_SENT)


def generate_order_id(
    prefix: str = "R",
    now_ms: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """prefix + last 6 digits of the millisecond clock + 3 random digits"""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    rng = rng or random
    return f"{prefix}{str(now_ms)[-6:]}{rng.randint(0, 999):03d}"


def new_rental_order(
    customer: str = "",
    lines: Optional[Iterable[OrderLine]] = None,
    prefix: str = "R",
) -> RentalOrder:
    lines = tuple(lines) if lines is not None else ()
    if not lines:
        lines = (
            OrderLine(
                line_id=1,
                product_id=None,
                product_name="",
                quantity=1,
                list_price=0.0,
                unit_price=0.0,
            ),
        )
    return RentalOrder(id=generate_order_id(prefix), order_lines=lines, customer=customer)


def available_actions(stage: str) -> Tuple[str, ...]:
    return _ACTIONS.get(stage, ("save", "print", "cancel"))


def is_pricing_locked(order: RentalOrder) -> bool:
    return order.stage not in _EDITABLE_STAGES


def _move(order: RentalOrder, expected: str, target: str) -> RentalOrder:
    if order.stage != expected:
        raise InvalidTransitionError(order.stage, target, subject=f"Rental order {order.id}")
    return dataclasses.replace(order, stage=target)


def send(order: RentalOrder) -> RentalOrder:
    return _move(order, QUOTATION, QUOTATION_SENT)


def confirm(order: RentalOrder) -> RentalOrder:
    return _move(order, QUOTATION_SENT, RENTAL_ORDER)


def cancel(order: RentalOrder) -> RentalOrder:
    if order.stage == CANCELLED:
        raise InvalidTransitionError(order.stage, CANCELLED, subject=f"Rental order {order.id}")
    return dataclasses.replace(order, stage=CANCELLED)


def can_move(current: str, target: str) -> bool:
    """True if a stored order in stage current may be replaced by one in target."""
    return target == current or target in _MOVES.get(current, ())


def check_replacement(stored: Optional[RentalOrder], updated: RentalOrder) -> None:
    """
    Raise unless updated is a legal successor of the stored copy of the order.

    Stages only move forward along the workflow. Once the stored copy is
    a rental order (or cancelled) its lines and price list stay as they are.
    """
    if stored is None:
        return
    if not can_move(stored.stage, updated.stage):
        raise InvalidTransitionError(
            stored.stage, updated.stage, subject=f"Rental order {updated.id}"
        )
    if is_pricing_locked(stored) and (
        stored.order_lines != updated.order_lines or stored.price_list != updated.price_list
    ):
        raise PermissionDeniedError(
            f"Rental order {updated.id} is {STAGE_LABELS[stored.stage].lower()}, "
            "its lines and prices cannot change."
        )


def _ensure_editable(order: RentalOrder, what: str) -> None:
    if is_pricing_locked(order):
        raise PermissionDeniedError(
            f"Cannot {what} once the order is {STAGE_LABELS[order.stage].lower()}."
        )


def update_prices(order: RentalOrder, price_list: str) -> RentalOrder:
    """Reprice every line from its list price with the given price list."""
    _ensure_editable(order, "update prices")
    if price_list not in PRICE_LISTS:
        raise ValidationError(f"Unknown price list '{price_list}'.")

    multiplier = PRICE_LISTS[price_list]
    lines = tuple(
        dataclasses.replace(line, unit_price=round(line.list_price * multiplier, 2))
        for line in order.order_lines
    )
    return dataclasses.replace(order, order_lines=lines, price_list=price_list)


def add_line(
    order: RentalOrder,
    product_id: Optional[int],
    product_name: str,
    quantity: int = 1,
    unit_price: float = 0.0,
    tax: float = 0.0,
) -> RentalOrder:
    _ensure_editable(order, "add order lines")
    _check_line_values(quantity, unit_price, tax)
    next_id = max((line.line_id for line in order.order_lines), default=0) + 1
    line = OrderLine(
        line_id=next_id,
        product_id=product_id,
        product_name=product_name,
        quantity=quantity,
        list_price=unit_price,
        unit_price=unit_price,
        tax=tax,
    )
    return dataclasses.replace(order, order_lines=order.order_lines + (line,))


def remove_line(order: RentalOrder, line_id: int) -> RentalOrder:
    _ensure_editable(order, "remove order lines")
    if not any(line.line_id == line_id for line in order.order_lines):
        raise ValidationError(f"Order line {line_id} does not exist.")
    if len(order.order_lines) <= 1:
        raise LastOrderLineError()
    lines = tuple(line for line in order.order_lines if line.line_id != line_id)
    return dataclasses.replace(order, order_lines=lines)


def update_line(
    order: RentalOrder,
    line_id: int,
    quantity: Optional[int] = None,
    unit_price: Optional[float] = None,
    tax: Optional[float] = None,
) -> RentalOrder:
    """
    Edit one order line. A new unit price also becomes the line's list
    price, so a later price list update starts from it.
    """
    _ensure_editable(order, "edit order lines")

    lines = []
    found = False
    for line in order.order_lines:
        if line.line_id != line_id:
            lines.append(line)
            continue
        found = True
        changes = {}
        if quantity is not None:
            changes["quantity"] = quantity
        if unit_price is not None:
            changes["unit_price"] = unit_price
            changes["list_price"] = unit_price
        if tax is not None:
            changes["tax"] = tax
        line = dataclasses.replace(line, **changes)
        _check_line_values(line.quantity, line.unit_price, line.tax)
        lines.append(line)

    if not found:
        raise ValidationError(f"Order line {line_id} does not exist.")
    return dataclasses.replace(order, order_lines=tuple(lines))


def _check_line_values(quantity: int, unit_price: float, tax: float) -> None:
    if quantity <= 0:
        raise ValidationError("Quantity must be at least 1.")
    if unit_price < 0:
        raise ValidationError("Unit price cannot be negative.")
    if tax < 0:
        raise ValidationError("Tax cannot be negative.")
