"""
Cart pricing: rental duration, line subtotals, the cart summary, coupons and
delivery charges. Everything here is a pure function of its arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from math import ceil
from typing import Dict, Iterable, Optional

from db.models import AppliedCoupon, CartLineItem, Coupon
from rental.errors import CouponNotFoundError

TAX_RATE = 0.10
DELIVERY_CHARGE = 50.0

HOME_DELIVERY = "home_delivery"
PICKUP = "pickup"
DELIVERY_METHODS = (HOME_DELIVERY, PICKUP)

COUPONS: Dict[str, Coupon] = {
    c.code: c
    for c in (
        Coupon("SAVE10", "percentage", 10, "10% off your rental"),
        Coupon("SAVE20", "percentage", 20, "20% off your rental"),
        Coupon("FLAT50", "fixed", 50, "Flat 50 off"),
        Coupon("FLAT100", "fixed", 100, "Flat 100 off"),
    )
}

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class CartSummary:
    subtotal: float
    tax: float
    total: float
    item_count: int


@dataclass(frozen=True)
class CheckoutTotals:
    subtotal: float
    tax: float
    delivery_charge: float
    discount: float
    total: float
    applied_coupon: Optional[AppliedCoupon] = None


def calculate_rental_duration(start: date, end: date) -> int:
    """Whole days between start and end, rounded up, never less than one."""
    days = ceil(abs(end - start) / _ONE_DAY)
    return max(days, 1)


def calculate_item_subtotal(item: CartLineItem) -> float:
    duration = calculate_rental_duration(item.rental_dates.start, item.rental_dates.end)
    return item.product.unit_price * item.quantity * duration


def get_cart_summary(items: Iterable[CartLineItem]) -> CartSummary:
    items = list(items)
    subtotal = sum(calculate_item_subtotal(item) for item in items)
    tax = subtotal * TAX_RATE
    return CartSummary(
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
        item_count=sum(item.quantity for item in items),
    )


def find_coupon(code: str) -> Coupon:
    """Look up a coupon, ignoring case and surrounding spaces."""
    normalized = (code or "").strip().upper()
    coupon = COUPONS.get(normalized)
    if coupon is None:
        raise CouponNotFoundError(normalized or code)
    return coupon


def calculate_discount(coupon: Coupon, subtotal: float) -> float:
    if coupon.type == "percentage":
        return subtotal * coupon.discount / 100
    return min(coupon.discount, subtotal)


def apply_coupon(code: str, subtotal: float) -> AppliedCoupon:
    coupon = find_coupon(code)
    return AppliedCoupon(coupon=coupon, discount=calculate_discount(coupon, subtotal))


def calculate_delivery_charge(delivery_method: str, subtotal: float) -> float:
    if delivery_method == HOME_DELIVERY and subtotal > 0:
        return DELIVERY_CHARGE
    return 0.0


def calculate_checkout_totals(
    items: Iterable[CartLineItem],
    delivery_method: str = HOME_DELIVERY,
    coupon_code: Optional[str] = None,
) -> CheckoutTotals:
    """
    Full price breakdown for checkout.

    Raises CouponNotFoundError if a coupon code is given but unknown.
    """
    summary = get_cart_summary(items)
    delivery = calculate_delivery_charge(delivery_method, summary.subtotal)

    applied = apply_coupon(coupon_code, summary.subtotal) if coupon_code else None
    discount = applied.discount if applied else 0.0

    total = max(0.0, summary.subtotal + summary.tax + delivery - discount)
    return CheckoutTotals(
        subtotal=summary.subtotal,
        tax=summary.tax,
        delivery_charge=delivery,
        discount=discount,
        total=total,
        applied_coupon=applied,
    )
