from datetime import date, timedelta
from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer

from db.crud import get_product
from db.models import Product, RentalDates
from rental.errors import RentEasyError
from rental.pricing import calculate_rental_duration
from utils.messages import CartChangedMessage, WishlistChangedMessage
from utils.pure import format_money, generate_markdown_table, parse_date


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail, plus renting it.
    Returns True if the cart or the wishlist changed.
    """

    order_qty = reactive(1)

    def __init__(self, pid: int) -> None:
        super().__init__()

        self._pid = pid
        self._prod: Optional[Product] = None
        self._changed = False

    def compose(self) -> ComposeResult:
        today = date.today()
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("", show_table_of_contents=False)
            with Vertical(id="vert-rent-form"):
                yield Label("Rental Start (YYYY-MM-DD)")
                yield Input(today.isoformat(), id="input-start-date")
                yield Label("Rental End (YYYY-MM-DD)")
                yield Input((today + timedelta(days=1)).isoformat(), id="input-end-date")
                yield Label("Quantity")
                with Horizontal(id="hort-qty"):
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                yield Label("", id="label-rent-estimate")
                yield Label("", id="label-in-cart")
                with Horizontal(id="hort-prod-btns"):
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Wishlist", id="btn-wishlist")
                    yield Button("Add to Cart", id="btn-addcart", variant="primary")

    async def on_mount(self):
        self._prod = await get_product(self._pid)
        if self._prod is None:
            self.notify(f"Product {self._pid} not found.", severity="error")
            self.dismiss(False)
            return

        await self.query_one(MarkdownViewer).document.update(self._render_markdown())

        stock_cnt = self._prod.stock_count
        if stock_cnt < 1:
            order_btn = self.query_one("#btn-addcart", Button)
            order_btn.label = "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"

        self.query_one("#input-order-qty").validators = [
            Number(minimum=1, maximum=max(stock_cnt, 1))
        ]
        if self.app.state.wishlist.contains(self._pid):
            self.query_one("#btn-wishlist", Button).label = "Remove from Wishlist"

        self._refresh_estimate()
        self.query_one("#input-start-date").focus()

    def _render_markdown(self) -> str:
        prod = self._prod
        rows = [
            ["Category", prod.category],
            ["Daily Rate", format_money(prod.unit_price)],
            ["In Stock", prod.stock_count],
            ["Replacement Value", format_money(prod.replacement_value)],
        ]
        md = f"### {prod.name}\n\n{prod.descr}\n\n"
        md += generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
        if prod.pricing_rules:
            md += "\n\n#### Pricing\n\n" + generate_markdown_table(
                ["Period", "Price", "Active"],
                [
                    [r.pricing_type, format_money(r.base_price), "yes" if r.is_active else "no"]
                    for r in prod.pricing_rules
                ],
                ["l", "r", "c"],
            )
        return md

    def _rental_dates(self) -> RentalDates:
        return RentalDates(
            start=parse_date(self.query_one("#input-start-date", Input).value),
            end=parse_date(self.query_one("#input-end-date", Input).value),
        )

    def _refresh_estimate(self) -> None:
        if self._prod is None:
            return
        dates = self._rental_dates()
        estimate = self.query_one("#label-rent-estimate", Label)
        in_cart = self.query_one("#label-in-cart", Label)
        if not dates.start or not dates.end or dates.end < dates.start:
            estimate.update("Enter a valid rental period")
            in_cart.update("")
            return

        days = calculate_rental_duration(dates.start, dates.end)
        subtotal = self._prod.unit_price * self.order_qty * days
        estimate.update(f"{days} day(s): {format_money(subtotal)}")

        existing = self.app.state.cart.get_item(self._pid, dates)
        in_cart.update(f"Already in cart: {existing.quantity}" if existing else "")

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(self._changed)

    @on(Input.Changed, "#input-start-date")
    @on(Input.Changed, "#input-end-date")
    def handle_dates_changed(self) -> None:
        self._refresh_estimate()

    @on(Input.Changed, "#input-order-qty")
    def handle_qty_input(self, message: Input.Changed) -> None:
        if message.input.is_valid and message.value and self.focused == message.input:
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int):
        if self._prod is None:
            return
        self.query_one("#btn-sub-qty").disabled = qty <= 1
        self.query_one("#btn-add-qty").disabled = qty >= self._prod.stock_count

        input_order_qty = self.query_one("#input-order-qty", Input)
        if input_order_qty.value != str(qty):
            input_order_qty.value = str(qty)
        self._refresh_estimate()

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty = max(self.order_qty - 1, 1)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(self._changed)

    @on(Button.Pressed, "#btn-wishlist")
    def handle_wishlist(self):
        wishlist = self.app.state.wishlist
        button = self.query_one("#btn-wishlist", Button)
        if wishlist.contains(self._pid):
            wishlist.remove(self._pid)
            button.label = "Wishlist"
            self.notify("Removed from wishlist.")
        else:
            wishlist.add(self._prod.ref())
            button.label = "Remove from Wishlist"
            self.notify("Added to wishlist.")
        self._changed = True
        self.app.post_message(WishlistChangedMessage())

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        cart = self.app.state.cart
        dates = self._rental_dates()

        existing = cart.get_item(self._pid, dates)
        already = existing.quantity if existing else 0
        if already + self.order_qty > self._prod.stock_count:
            self.notify(
                f"Only {self._prod.stock_count} in stock, {already} already in cart.",
                severity="error",
            )
            return

        try:
            cart.add_item(self._prod.ref(), self.order_qty, dates)
        except RentEasyError as e:
            self.notify(str(e), severity="error")
            return

        self.app.notify("Updated cart item quantity." if existing else "Added to cart.")
        self.app.post_message(CartChangedMessage())
        self.dismiss(True)
