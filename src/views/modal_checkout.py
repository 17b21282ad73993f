from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Markdown, RadioButton, RadioSet, Select

import db.crud
from db.models import Address, CheckoutDetails
from rental.checkout import PAYMENT_METHODS, build_order_request, validate_checkout
from rental.errors import CheckoutValidationError, RentEasyError
from rental.pricing import HOME_DELIVERY, PICKUP, calculate_checkout_totals, find_coupon
from utils.logger import get_logger
from utils.pure import format_money, generate_markdown_table
from views.modal_dialog import DialogModal

_logger = get_logger(__name__)

PAYMENT_LABELS = {
    "card": "Credit / Debit Card",
    "upi": "UPI",
    "cod": "Cash on Delivery",
    "bank_transfer": "Bank Transfer",
}

_ADDRESS_FIELDS = (
    ("full_name", "Full Name"),
    ("email", "Email"),
    ("phone", "Phone"),
    ("street", "Street"),
    ("city", "City"),
    ("state", "State"),
    ("postal_code", "Postal Code"),
)


class CheckoutModal(ModalScreen[bool]):
    """
    Checkout form: billing and delivery addresses, delivery and payment
    method, coupon and notes, with the live price breakdown.
    Returns True once an order has been placed.
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="vert-checkout"):
            with VerticalScroll(id="scroll-checkout"):
                yield Markdown("", id="md-checkout-summary")

                yield Label("Billing Address", classes="section-title")
                for attr, label in _ADDRESS_FIELDS:
                    yield Input(placeholder=label, id=f"input-billing-{attr}")

                yield Label("Delivery Method", classes="section-title")
                with RadioSet(id="radio-delivery"):
                    yield RadioButton("Home Delivery", value=True, id="radio-home_delivery")
                    yield RadioButton("Store Pickup", id="radio-pickup")

                with Vertical(id="vert-delivery-address"):
                    yield Label(
                        "Delivery Address (leave street blank to use billing)",
                        classes="section-title",
                    )
                    for attr, label in _ADDRESS_FIELDS:
                        yield Input(placeholder=label, id=f"input-delivery-{attr}")

                yield Label("Payment Method", classes="section-title")
                yield Select(
                    [(PAYMENT_LABELS[m], m) for m in PAYMENT_METHODS],
                    value="cod",
                    allow_blank=False,
                    id="select-payment",
                )

                yield Label("Coupon", classes="section-title")
                with Horizontal(id="hort-coupon"):
                    yield Input(placeholder="SAVE10", id="input-coupon")
                    yield Button("Apply", id="btn-apply-coupon")
                    yield Button("Remove", id="btn-remove-coupon")

                yield Label("Notes", classes="section-title")
                yield Input(placeholder="Anything we should know?", id="input-notes")

            with Horizontal(id="hort-checkout-btns"):
                yield Button("Go Back", id="btn-quit")
                yield Button("Place Order", id="btn-submit", variant="primary")

    async def on_mount(self):
        state = self.app.state
        customer = await db.crud.get_customer(state.cid)
        if customer:
            self.query_one("#input-billing-full_name", Input).value = customer.name
            self.query_one("#input-billing-email", Input).value = customer.email
            self.query_one("#input-billing-phone", Input).value = customer.phone
        if state.coupon_code:
            self.query_one("#input-coupon", Input).value = state.coupon_code

        self.refresh_totals()
        self.query_one("#input-billing-street").focus()

    def _delivery_method(self) -> str:
        pressed = self.query_one("#radio-delivery", RadioSet).pressed_button
        if pressed is not None and pressed.id == "radio-pickup":
            return PICKUP
        return HOME_DELIVERY

    def _address(self, prefix: str) -> Address:
        values = {
            attr: self.query_one(f"#input-{prefix}-{attr}", Input).value.strip()
            for attr, _ in _ADDRESS_FIELDS
        }
        return Address(**values)

    def _details(self) -> CheckoutDetails:
        return CheckoutDetails(
            billing_address=self._address("billing"),
            delivery_address=self._address("delivery"),
            delivery_method=self._delivery_method(),
            payment_method=self.query_one("#select-payment", Select).value,
            notes=self.query_one("#input-notes", Input).value.strip(),
        )

    def refresh_totals(self) -> None:
        state = self.app.state
        totals = calculate_checkout_totals(
            state.cart.items, self._delivery_method(), state.coupon_code
        )
        rows = [
            ["Subtotal", format_money(totals.subtotal)],
            ["Tax (10%)", format_money(totals.tax)],
            [
                "Delivery",
                format_money(totals.delivery_charge) if totals.delivery_charge else "Free",
            ],
        ]
        if totals.applied_coupon:
            rows.append(
                [
                    f"Discount ({totals.applied_coupon.coupon.code})",
                    format_money(-totals.discount),
                ]
            )
        rows.append(["**Total**", f"**{format_money(totals.total)}**"])

        md = f"### Checkout: {state.cart.item_count()} item(s)\n\n"
        md += generate_markdown_table(["", "Amount"], rows, ["l", "r"])
        self.query_one("#md-checkout-summary", Markdown).update(md)

        self.query_one("#vert-delivery-address").display = (
            self._delivery_method() == HOME_DELIVERY
        )

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(RadioSet.Changed, "#radio-delivery")
    def handle_delivery_changed(self) -> None:
        self.refresh_totals()

    @on(Button.Pressed, "#btn-apply-coupon")
    @on(Input.Submitted, "#input-coupon")
    def handle_apply_coupon(self) -> None:
        coupon_input = self.query_one("#input-coupon", Input)
        try:
            coupon = find_coupon(coupon_input.value)
        except RentEasyError as e:
            coupon_input.add_class("-invalid")
            self.notify(str(e), severity="error")
            return

        coupon_input.remove_class("-invalid")
        coupon_input.value = coupon.code
        self.app.state.coupon_code = coupon.code
        self.notify(f"Coupon {coupon.code} applied: {coupon.description}")
        self.refresh_totals()

    @on(Button.Pressed, "#btn-remove-coupon")
    def handle_remove_coupon(self) -> None:
        self.app.state.coupon_code = None
        self.query_one("#input-coupon", Input).value = ""
        self.refresh_totals()

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        state = self.app.state
        details = self._details()
        try:
            validate_checkout(
                state.cart.items, details, strict=state.settings.strict_validation
            )
        except CheckoutValidationError as e:
            self.notify(str(e), severity="error")
            return

        request = build_order_request(state.cart.items, details, state.coupon_code)
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Place order for {format_money(request.total_amount)}?",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        order_id = await db.crud.place_order(state.cid, request)
        order = await db.crud.get_order(order_id)
        _logger.info(f"Customer {state.cid} placed {order.order_number}")

        state.cart.clear()
        state.coupon_code = None
        self.notify(f"Order placed. Your order number is {order.order_number}.")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
