"""
Cart and wishlist state.

The module level functions are pure transitions over a tuple of line items.
CartStore and WishlistStore hold the current tuple, apply transitions and
call their listener after each change, which is how the app persists them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Optional, Tuple

from db.models import CartLineItem, ProductRef, RentalDates, WishlistEntry
from rental.errors import MissingRentalDatesError, ValidationError
from rental.pricing import CartSummary, get_cart_summary

CartItems = Tuple[CartLineItem, ...]


def line_item_id(pid: int, rental_dates: RentalDates) -> str:
    return f"{pid}-{rental_dates.start.isoformat()}-{rental_dates.end.isoformat()}"


def validate_rental_dates(rental_dates: Optional[RentalDates]) -> RentalDates:
    if rental_dates is None or not rental_dates.start or not rental_dates.end:
        raise MissingRentalDatesError()
    if rental_dates.end < rental_dates.start:
        raise ValidationError("Rental end date cannot be before the start date.")
    return rental_dates


def add_item(
    items: CartItems,
    product: ProductRef,
    quantity: int,
    rental_dates: Optional[RentalDates],
) -> CartItems:
    rental_dates = validate_rental_dates(rental_dates)
    if quantity <= 0:
        raise ValidationError("Quantity must be at least 1.")

    item_id = line_item_id(product.pid, rental_dates)
    if any(item.id == item_id for item in items):
        return tuple(
            CartLineItem(
                id=item.id,
                product=item.product,
                quantity=item.quantity + quantity,
                rental_dates=item.rental_dates,
            )
            if item.id == item_id
            else item
            for item in items
        )

    new_item = CartLineItem(
        id=item_id, product=product, quantity=quantity, rental_dates=rental_dates
    )
    return items + (new_item,)


def update_quantity(items: CartItems, item_id: str, quantity: int) -> CartItems:
    """Set the quantity of a line; zero or less drops the line."""
    if quantity <= 0:
        return remove_item(items, item_id)
    return tuple(
        CartLineItem(
            id=item.id,
            product=item.product,
            quantity=quantity,
            rental_dates=item.rental_dates,
        )
        if item.id == item_id
        else item
        for item in items
    )


def remove_item(items: CartItems, item_id: str) -> CartItems:
    return tuple(item for item in items if item.id != item_id)


class CartStore:
    """
    Holds the cart for the current customer.

    Totals are never stored, get_cart_summary() recomputes them from the
    line items every time, so a cart reloaded from storage always prices the
    same way.
    """

    def __init__(
        self,
        items: Iterable[CartLineItem] = (),
        listener: Optional[Callable[[CartItems], None]] = None,
    ):
        self._items: CartItems = tuple(items)
        self.listener = listener

    @property
    def items(self) -> CartItems:
        return self._items

    def _commit(self, items: CartItems) -> None:
        self._items = items
        if self.listener is not None:
            self.listener(items)

    def load(self, items: Iterable[CartLineItem]) -> None:
        """Replace the contents without notifying, used when reading storage."""
        self._items = tuple(items)

    def add_item(
        self, product: ProductRef, quantity: int, rental_dates: Optional[RentalDates]
    ) -> None:
        self._commit(add_item(self._items, product, quantity, rental_dates))

    def update_quantity(self, item_id: str, quantity: int) -> None:
        self._commit(update_quantity(self._items, item_id, quantity))

    def remove_item(self, item_id: str) -> None:
        self._commit(remove_item(self._items, item_id))

    def clear(self) -> None:
        self._commit(())

    def get_item(
        self, pid: int, rental_dates: Optional[RentalDates]
    ) -> Optional[CartLineItem]:
        if rental_dates is None or not rental_dates.start or not rental_dates.end:
            return None
        item_id = line_item_id(pid, rental_dates)
        return next((item for item in self._items if item.id == item_id), None)

    def contains(self, pid: int, rental_dates: Optional[RentalDates]) -> bool:
        return self.get_item(pid, rental_dates) is not None

    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    def summary(self) -> CartSummary:
        return get_cart_summary(self._items)

    def __len__(self) -> int:
        return len(self._items)


class WishlistStore:
    """Products saved for later, at most one entry per product."""

    def __init__(
        self,
        entries: Iterable[WishlistEntry] = (),
        listener: Optional[Callable[[Tuple[WishlistEntry, ...]], None]] = None,
    ):
        self._entries: Tuple[WishlistEntry, ...] = tuple(entries)
        self.listener = listener

    @property
    def entries(self) -> Tuple[WishlistEntry, ...]:
        return self._entries

    def _commit(self, entries: Tuple[WishlistEntry, ...]) -> None:
        self._entries = entries
        if self.listener is not None:
            self.listener(entries)

    def load(self, entries: Iterable[WishlistEntry]) -> None:
        self._entries = tuple(entries)

    def add(self, product: ProductRef, when: Optional[datetime] = None) -> bool:
        """Returns False if the product was already there."""
        if self.contains(product.pid):
            return False
        entry = WishlistEntry(
            pid=product.pid,
            name=product.name,
            unit_price=product.unit_price,
            added_at=when or datetime.now(),
        )
        self._commit(self._entries + (entry,))
        return True

    def remove(self, pid: int) -> None:
        self._commit(tuple(e for e in self._entries if e.pid != pid))

    def contains(self, pid: int) -> bool:
        return any(e.pid == pid for e in self._entries)

    def clear(self) -> None:
        self._commit(())

    def __len__(self) -> int:
        return len(self._entries)
