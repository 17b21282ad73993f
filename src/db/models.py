# provide dataclass models

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Optional, Tuple

DeliveryMethod = Literal["home_delivery", "pickup"]
PaymentMethod = Literal["card", "upi", "cod", "bank_transfer"]
CouponType = Literal["percentage", "fixed"]


@dataclass(frozen=True)
class Customer:
    cid: int
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class PricingRule:
    pricing_type: str  # "hourly" | "daily" | "weekly" | "monthly"
    base_price: float
    is_active: bool = True


@dataclass(frozen=True)
class Product:
    pid: int
    name: str
    category: str
    stock_count: int
    replacement_value: float
    descr: str
    pricing_rules: Tuple[PricingRule, ...] = ()

    @property
    def unit_price(self) -> float:
        """Daily rate: first active daily rule, else first active rule, else 0."""
        active = [r for r in self.pricing_rules if r.is_active]
        for rule in active:
            if rule.pricing_type == "daily":
                return rule.base_price
        return active[0].base_price if active else 0.0

    def ref(self) -> ProductRef:
        return ProductRef(pid=self.pid, name=self.name, unit_price=self.unit_price)


@dataclass(frozen=True)
class ProductRef:
    """The part of a product a cart line needs to price itself."""

    pid: int
    name: str
    unit_price: float


@dataclass(frozen=True)
class RentalDates:
    start: Optional[date]
    end: Optional[date]


@dataclass(frozen=True)
class CartLineItem:
    id: str
    product: ProductRef
    quantity: int
    rental_dates: RentalDates


@dataclass(frozen=True)
class WishlistEntry:
    pid: int
    name: str
    unit_price: float
    added_at: datetime


@dataclass(frozen=True)
class Coupon:
    code: str
    type: CouponType
    discount: float
    description: str = ""


@dataclass(frozen=True)
class AppliedCoupon:
    coupon: Coupon
    discount: float


@dataclass(frozen=True)
class Address:
    full_name: str = ""
    email: str = ""
    phone: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "India"


@dataclass(frozen=True)
class CheckoutDetails:
    billing_address: Address = field(default_factory=Address)
    delivery_address: Address = field(default_factory=Address)
    delivery_method: str = "home_delivery"
    payment_method: str = "cod"
    notes: str = ""


@dataclass(frozen=True)
class OrderItem:
    pid: int
    product_name: str
    quantity: int
    unit_price: float  # daily rate at time of order
    rental_start: date
    rental_end: date


@dataclass(frozen=True)
class OrderRequest:
    items: Tuple[OrderItem, ...]
    billing_address: Address
    delivery_address: Address
    delivery_method: str
    payment_method: str
    subtotal: float
    tax_amount: float
    delivery_charge: float
    discount_amount: float
    total_amount: float
    applied_coupon: Optional[str] = None
    notes: str = ""


@dataclass(frozen=True)
class Order:
    id: str
    order_number: str
    cid: int
    customer_name: str
    customer_email: str
    items: Tuple[OrderItem, ...]
    status: str
    delivery_method: str
    payment_method: str
    billing_address: Address
    delivery_address: Address
    subtotal: float
    tax_amount: float
    delivery_charge: float
    discount_amount: float
    total_amount: float
    applied_coupon: Optional[str]
    notes: str
    created_at: datetime


@dataclass(frozen=True)
class OrderEvent:
    order_id: str
    ts: datetime
    action: str
    details: str


@dataclass(frozen=True)
class OrderLine:
    line_id: int
    product_id: Optional[int]
    product_name: str
    quantity: int
    list_price: float  # price before any price list is applied
    unit_price: float
    tax: float = 0.0  # percent

    @property
    def subtotal(self) -> float:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class RentalOrder:
    id: str
    order_lines: Tuple[OrderLine, ...]
    stage: str = "quotation"
    customer: str = ""
    invoice_address: str = ""
    delivery_address: str = ""
    order_date: date = field(default_factory=date.today)
    price_list: Optional[str] = None
    terms: str = ""

    @property
    def untaxed_total(self) -> float:
        return sum(line.subtotal for line in self.order_lines)

    @property
    def tax(self) -> float:
        return sum(line.subtotal * line.tax / 100 for line in self.order_lines)

    @property
    def total(self) -> float:
        return self.untaxed_total + self.tax

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.order_lines)


@dataclass(frozen=True)
class RankedEntry:
    """One row of a dashboard top list: a product, category or customer."""

    label: str
    ordered: int  # distinct orders
    revenue: float


@dataclass(frozen=True)
class DashboardSummary:
    quotations: int  # quotation and quotation-sent rental orders
    rentals: int  # confirmed rental orders
    orders: int  # customer orders that are not cancelled
    revenue: float
    top_categories: Tuple[RankedEntry, ...] = ()
    top_products: Tuple[RankedEntry, ...] = ()
    top_customers: Tuple[RankedEntry, ...] = ()
