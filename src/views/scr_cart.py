from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label, Rule

from db.models import CartLineItem
from rental.pricing import calculate_item_subtotal, calculate_rental_duration
from utils.messages import CartChangedMessage, NewOrderMessage
from utils.pure import format_money, format_period
from views.base_screen import BaseScreen
from views.modal_checkout import CheckoutModal
from views.modal_dialog import DialogModal


class CartScreen(BaseScreen):
    """
    Cart lines with their rental periods, quantity controls and the summary.
    """

    BINDINGS = [
        Binding("+", "change_qty(1)", "More", show=True),
        Binding("-", "change_qty(-1)", "Less", show=True),
        Binding("delete", "remove_item", "Remove", show=True),
    ]

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield DataTable(id="table-cart")
        yield Label("", id="label-cart-summary")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("-", id="btn-sub-qty")
            yield Button("+", id="btn-add-qty")
            yield Button("Remove", id="btn-remove", variant="warning")
            yield Button("Clear Cart", id="btn-clear-cart", variant="error")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Product", "Rental Period", "Days", "Qty", "Daily Rate", "Subtotal")
        self.handle_cart_change()

    @on(CartChangedMessage)
    @on(ScreenResume)
    def handle_cart_change(self):
        """
        Redraw the table from the cart store, keeping the cursor on the same line.
        """
        cart = self.app.state.cart
        table = self.query_one(DataTable)
        selected = self._selected_item()

        table.clear()
        for item in cart.items:
            start, end = item.rental_dates.start, item.rental_dates.end
            table.add_row(
                item.product.name,
                format_period(start, end),
                calculate_rental_duration(start, end),
                item.quantity,
                format_money(item.product.unit_price),
                format_money(calculate_item_subtotal(item)),
                key=item.id,
            )
        if selected is not None and selected.id in [i.id for i in cart.items]:
            table.move_cursor(row=table.get_row_index(selected.id))

        summary = cart.summary()
        self.query_one("#label-cart-summary", Label).update(
            f"Items: {summary.item_count}   "
            f"Subtotal: {format_money(summary.subtotal)}   "
            f"Tax (10%): {format_money(summary.tax)}   "
            f"Total: {format_money(summary.total)}"
        )

        empty = len(cart) == 0
        for btn_id in ("#btn-sub-qty", "#btn-add-qty", "#btn-remove", "#btn-clear-cart", "#btn-checkout"):
            self.query_one(btn_id, Button).disabled = empty

    def _selected_item(self) -> Optional[CartLineItem]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return next(
            (i for i in self.app.state.cart.items if i.id == row_key.value), None
        )

    def action_change_qty(self, delta: int) -> None:
        item = self._selected_item()
        if item is None:
            return
        if delta < 0 and item.quantity == 1:
            self.action_remove_item()
            return
        self.app.state.cart.update_quantity(item.id, item.quantity + delta)
        self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self) -> None:
        self.action_change_qty(1)

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self) -> None:
        self.action_change_qty(-1)

    @on(Button.Pressed, "#btn-remove")
    @work()
    async def action_remove_item(self) -> None:
        item = self._selected_item()
        if item is None:
            return
        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                f"Remove {item.product.name} from the cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        )
        if remove_confirmed:
            self.app.state.cart.remove_item(item.id)
            self.post_message(CartChangedMessage())
            self.notify("Item removed from cart.", severity="information")

    @on(Button.Pressed, "#btn-clear-cart")
    @work()
    async def handle_clear_cart(self) -> None:
        if not len(self.app.state.cart):
            self.app.notify("Cart is empty.", severity="warning")
            return

        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove all items from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        )
        if remove_confirmed:
            self.app.state.cart.clear()
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        """
        Open up the checkout form
        """
        if not len(self.app.state.cart):
            self.app.notify("Cart is empty.", severity="warning")
            return

        if await self.app.push_screen_wait(CheckoutModal()):
            self.app.post_message(NewOrderMessage())
        self.post_message(CartChangedMessage())
        await self.refresh_sidebar()
