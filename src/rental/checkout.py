from __future__ import annotations

from typing import Iterable, List, Optional

from db.models import Address, CartLineItem, CheckoutDetails, OrderItem, OrderRequest
from rental.errors import CheckoutValidationError
from rental.pricing import DELIVERY_METHODS, HOME_DELIVERY, calculate_checkout_totals

PAYMENT_METHODS = ("card", "upi", "cod", "bank_transfer")

_REQUIRED_ADDRESS_FIELDS = (
    ("full_name", "full name"),
    ("email", "email"),
    ("phone", "phone"),
    ("street", "street"),
    ("city", "city"),
    ("postal_code", "postal code"),
)


def _missing_address_fields(address: Address, label: str) -> List[str]:
    return [
        f"{label} {name}"
        for attr, name in _REQUIRED_ADDRESS_FIELDS
        if not getattr(address, attr).strip()
    ]


def validate_checkout(
    items: Iterable[CartLineItem], details: CheckoutDetails, strict: bool = True
) -> None:
    """
    Raise CheckoutValidationError listing every problem with the checkout form.

    With strict=False only an empty cart is rejected, everything else is
    accepted as typed.
    """
    problems: List[str] = []
    if not list(items):
        problems.append("cart items")

    if strict:
        problems += _missing_address_fields(details.billing_address, "billing")
        if details.delivery_method not in DELIVERY_METHODS:
            problems.append("delivery method")
        elif details.delivery_method == HOME_DELIVERY:
            delivery = resolve_delivery_address(details)
            if not delivery.street.strip() or not delivery.city.strip():
                problems.append("delivery address")
        if details.payment_method not in PAYMENT_METHODS:
            problems.append("payment method")

    if problems:
        raise CheckoutValidationError(problems)


def resolve_delivery_address(details: CheckoutDetails) -> Address:
    """A delivery address without a street means 'same as billing'."""
    if details.delivery_address.street.strip():
        return details.delivery_address
    return details.billing_address


def build_order_request(
    items: Iterable[CartLineItem],
    details: CheckoutDetails,
    coupon_code: Optional[str] = None,
) -> OrderRequest:
    items = list(items)
    totals = calculate_checkout_totals(items, details.delivery_method, coupon_code)
    order_items = tuple(
        OrderItem(
            pid=item.product.pid,
            product_name=item.product.name,
            quantity=item.quantity,
            unit_price=item.product.unit_price,
            rental_start=item.rental_dates.start,
            rental_end=item.rental_dates.end,
        )
        for item in items
    )
    return OrderRequest(
        items=order_items,
        billing_address=details.billing_address,
        delivery_address=resolve_delivery_address(details),
        delivery_method=details.delivery_method,
        payment_method=details.payment_method,
        subtotal=totals.subtotal,
        tax_amount=totals.tax,
        delivery_charge=totals.delivery_charge,
        discount_amount=totals.discount,
        total_amount=totals.total,
        applied_coupon=(
            totals.applied_coupon.coupon.code if totals.applied_coupon else None
        ),
        notes=details.notes,
    )
