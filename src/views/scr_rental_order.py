import dataclasses
import os
from typing import Callable, Optional

import aiosqlite
from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, Select

import db.crud
from db.models import RentalOrder
from rental import workflow
from rental.errors import RentEasyError
from utils.logger import get_logger
from utils.pure import format_money, render_rental_order_markdown
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal, DocumentModal

_logger = get_logger(__name__)

_ACTION_BUTTONS = {
    "save": "#btn-save",
    "send": "#btn-send",
    "confirm": "#btn-confirm",
    "cancel": "#btn-cancel-order",
    "print": "#btn-print",
    "export": "#btn-export",
}

_HEADER_FIELDS = {
    "#input-customer": "customer",
    "#input-invoice-address": "invoice_address",
    "#input-delivery-address": "delivery_address",
    "#input-terms": "terms",
}


class RentalOrderScreen(BaseScreen):
    """
    Vendor side rental order form.

    A new form starts as a quotation with one empty line. Every change goes
    through rental.workflow and the result is saved straight away, so the
    form never shows an order that is not stored.
    """

    def __init__(self) -> None:
        super().__init__()
        self._order: RentalOrder = workflow.new_rental_order()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-rental-top"):
            yield Select([], prompt="Open rental order...", id="select-load")
            yield Button("New Quotation", id="btn-new")
            yield Label("", id="label-stage")

        with Horizontal(id="hort-rental-header"):
            with Vertical():
                yield Input(placeholder="Customer", id="input-customer")
                yield Input(placeholder="Invoice Address", id="input-invoice-address")
            with Vertical():
                yield Input(placeholder="Delivery Address", id="input-delivery-address")
                yield Input(placeholder="Terms & Conditions", id="input-terms")
            with Vertical(id="vert-price-list"):
                yield Select(
                    [(k.title(), k) for k in workflow.PRICE_LISTS],
                    prompt="Price list",
                    id="select-price-list",
                )
                yield Button("Update Prices", id="btn-update-prices")

        yield DataTable(id="table-lines")

        with Horizontal(id="hort-line-editor"):
            yield Input(placeholder="Product (name or PID)", id="input-line-product")
            yield Input(
                placeholder="Qty",
                id="input-line-qty",
                type="integer",
                validators=[Number(minimum=1)],
            )
            yield Input(
                placeholder="Unit Price",
                id="input-line-price",
                type="number",
                validators=[Number(minimum=0)],
            )
            yield Input(
                placeholder="Tax %",
                id="input-line-tax",
                type="number",
                validators=[Number(minimum=0)],
            )
            yield Button("Add", id="btn-add-line", variant="success")
            yield Button("Update", id="btn-update-line")
            yield Button("Remove", id="btn-remove-line", variant="warning")

        yield Label("", id="label-rental-totals")

        with Horizontal(id="hort-rental-actions"):
            yield Button("Save", id="btn-save", variant="primary")
            yield Button("Send", id="btn-send", variant="primary")
            yield Button("Confirm", id="btn-confirm", variant="success")
            yield Button("Print", id="btn-print")
            yield Button("Export", id="btn-export")
            yield Button("Cancel", id="btn-cancel-order", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("#", "Product", "Qty", "List Price", "Unit Price", "Tax %", "Sub Total")
        self._render()

    @on(ScreenResume)
    def handle_resume(self) -> None:
        self._reload_order_list()

    @work(exclusive=True, group="order-list")
    async def _reload_order_list(self) -> None:
        orders = await db.crud.list_rental_orders()
        self.query_one("#select-load", Select).set_options(
            [
                (f"{oid}  {customer or '-'}  [{workflow.STAGE_LABELS.get(stage, stage)}]", oid)
                for oid, customer, stage in orders
            ]
        )

    # ---------- rendering ----------

    def _render(self) -> None:
        order = self._order
        locked = workflow.is_pricing_locked(order)

        self.query_one("#label-stage", Label).update(
            " > ".join(
                f"[b]{workflow.STAGE_LABELS[s]}[/b]" if s == order.stage else workflow.STAGE_LABELS[s]
                for s in workflow.STAGES
            )
            + ("   [b red]Cancelled[/]" if order.stage == workflow.CANCELLED else "")
            + f"   {order.id}"
        )

        for selector, attr in _HEADER_FIELDS.items():
            field_input = self.query_one(selector, Input)
            if field_input.value != getattr(order, attr):
                field_input.value = getattr(order, attr)
            field_input.disabled = locked

        table = self.query_one(DataTable)
        cursor_row = table.cursor_row
        table.clear()
        for line in order.order_lines:
            table.add_row(
                line.line_id,
                line.product_name or "-",
                line.quantity,
                format_money(line.list_price),
                format_money(line.unit_price),
                f"{line.tax:g}",
                format_money(line.subtotal),
                key=str(line.line_id),
            )
        if order.order_lines:
            table.move_cursor(row=min(cursor_row, len(order.order_lines) - 1))

        for widget_id in (
            "#select-price-list",
            "#btn-update-prices",
            "#input-line-product",
            "#input-line-qty",
            "#input-line-price",
            "#input-line-tax",
            "#btn-add-line",
            "#btn-update-line",
            "#btn-remove-line",
        ):
            self.query_one(widget_id).disabled = locked

        self.query_one("#label-rental-totals", Label).update(
            f"Untaxed: {format_money(order.untaxed_total)}   "
            f"Tax: {format_money(order.tax)}   "
            f"Total: {format_money(order.total)}   "
            f"({order.total_quantity} units)"
        )

        actions = workflow.available_actions(order.stage)
        for action, selector in _ACTION_BUTTONS.items():
            self.query_one(selector, Button).display = action in actions

    def _selected_line_id(self) -> Optional[int]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return int(row_key.value)

    # ---------- mutations ----------

    async def _apply(self, change: Callable[[RentalOrder], RentalOrder]) -> bool:
        """Run a workflow step, save the result. False if it was refused or not saved."""
        try:
            updated = change(self._order)
            await db.crud.save_rental_order(updated)
        except RentEasyError as e:
            self.notify(str(e), severity="error")
            return False
        except aiosqlite.Error as e:
            _logger.error(f"Saving rental order {self._order.id} failed", exc_info=e)
            self.notify("Could not save the rental order, try again.", severity="error")
            return False

        self._order = updated
        self._render()
        self._reload_order_list()
        return True

    @on(Input.Changed, "#input-customer")
    @on(Input.Changed, "#input-invoice-address")
    @on(Input.Changed, "#input-delivery-address")
    @on(Input.Changed, "#input-terms")
    def handle_header_changed(self, event: Input.Changed) -> None:
        attr = _HEADER_FIELDS["#" + event.input.id]
        if getattr(self._order, attr) != event.value:
            self._order = dataclasses.replace(self._order, **{attr: event.value})

    @on(Select.Changed, "#select-load")
    @work(exclusive=True)
    async def handle_load(self, event: Select.Changed) -> None:
        if event.value is Select.BLANK or event.value == self._order.id:
            return
        order = await db.crud.get_rental_order(event.value)
        if order is None:
            self.notify(f"Rental order {event.value} not found.", severity="error")
            return
        self._order = order
        self._render()

    @on(Button.Pressed, "#btn-new")
    def handle_new(self) -> None:
        self._order = workflow.new_rental_order()
        self.query_one("#select-load", Select).clear()
        self._render()
        self.notify(f"New quotation {self._order.id}")

    @on(Button.Pressed, "#btn-update-prices")
    @work(exclusive=True)
    async def handle_update_prices(self) -> None:
        price_list = self.query_one("#select-price-list", Select).value
        if price_list is Select.BLANK:
            self.notify("Pick a price list first.", severity="warning")
            return
        if await self._apply(lambda o: workflow.update_prices(o, price_list)):
            self.notify(f"Prices updated from the {price_list} price list.")

    async def _line_values(self):
        """(product_id, product_name, quantity, unit_price, tax) from the editor, None when blank."""
        product = self.query_one("#input-line-product", Input).value.strip()
        qty = self.query_one("#input-line-qty", Input).value.strip()
        price = self.query_one("#input-line-price", Input).value.strip()
        tax = self.query_one("#input-line-tax", Input).value.strip()

        product_id = None
        if product.isdigit():
            found = await db.crud.get_product(int(product))
            if found is None:
                raise RentEasyError(f"Product {product} not found.")
            product_id, product = found.pid, found.name
            if not price:
                price = str(found.unit_price)

        try:
            return (
                product_id,
                product or None,
                int(qty) if qty else None,
                float(price) if price else None,
                float(tax) if tax else None,
            )
        except ValueError:
            raise RentEasyError("Quantity, price and tax must be numbers.")

    @on(Button.Pressed, "#btn-add-line")
    @work(exclusive=True)
    async def handle_add_line(self) -> None:
        try:
            product_id, name, qty, price, tax = await self._line_values()
        except RentEasyError as e:
            self.notify(str(e), severity="error")
            return
        if not name:
            self.notify("Enter a product for the new line.", severity="error")
            return

        await self._apply(
            lambda o: workflow.add_line(
                o, product_id, name, qty or 1, price or 0.0, tax or 0.0
            )
        )

    @on(Button.Pressed, "#btn-update-line")
    @work(exclusive=True)
    async def handle_update_line(self) -> None:
        line_id = self._selected_line_id()
        if line_id is None:
            return
        try:
            product_id, name, qty, price, tax = await self._line_values()
        except RentEasyError as e:
            self.notify(str(e), severity="error")
            return

        def change(order: RentalOrder) -> RentalOrder:
            order = workflow.update_line(order, line_id, qty, price, tax)
            if name:
                lines = tuple(
                    dataclasses.replace(
                        line,
                        product_name=name,
                        product_id=product_id if product_id is not None else line.product_id,
                    )
                    if line.line_id == line_id
                    else line
                    for line in order.order_lines
                )
                order = dataclasses.replace(order, order_lines=lines)
            return order

        await self._apply(change)

    @on(Button.Pressed, "#btn-remove-line")
    @work(exclusive=True)
    async def handle_remove_line(self) -> None:
        line_id = self._selected_line_id()
        if line_id is None:
            return
        await self._apply(lambda o: workflow.remove_line(o, line_id))

    @on(DataTable.RowSelected, "#table-lines")
    def handle_line_selected(self) -> None:
        line_id = self._selected_line_id()
        line = next(
            (ln for ln in self._order.order_lines if ln.line_id == line_id), None
        )
        if line is None:
            return
        self.query_one("#input-line-product", Input).value = line.product_name
        self.query_one("#input-line-qty", Input).value = str(line.quantity)
        self.query_one("#input-line-price", Input).value = f"{line.unit_price:g}"
        self.query_one("#input-line-tax", Input).value = f"{line.tax:g}"

    # ---------- actions ----------

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        if await self._apply(lambda o: o):
            self.notify(f"Quotation {self._order.id} saved.")

    @on(Button.Pressed, "#btn-send")
    @work(exclusive=True)
    async def handle_send(self) -> None:
        if await self._apply(workflow.send):
            self.notify(f"Quotation {self._order.id} sent.")

    @on(Button.Pressed, "#btn-confirm")
    @work(exclusive=True)
    async def handle_confirm(self) -> None:
        if not await self._apply(workflow.confirm):
            return
        _logger.info(f"Rental order {self._order.id} confirmed")
        await self.app.push_screen_wait(
            DocumentModal(
                render_rental_order_markdown(
                    self._order, title=f"Rental Order {self._order.id} Confirmed"
                )
            )
        )

    @on(Button.Pressed, "#btn-cancel-order")
    @work(exclusive=True)
    async def handle_cancel(self) -> None:
        if not await self.app.push_screen_wait(
            DialogModal(
                f"Cancel rental order {self._order.id}? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            return
        if await self._apply(workflow.cancel):
            self.notify(f"Rental order {self._order.id} cancelled.", severity="warning")

    @on(Button.Pressed, "#btn-print")
    @work(exclusive=True)
    async def handle_print(self) -> None:
        await self.app.push_screen_wait(
            DocumentModal(render_rental_order_markdown(self._order))
        )

    @on(Button.Pressed, "#btn-export")
    def handle_export(self) -> None:
        export_dir = os.path.join(
            os.path.dirname(os.path.abspath(self.app.state.settings.db_path)), "exports"
        )
        os.makedirs(export_dir, exist_ok=True)
        path = os.path.join(export_dir, f"{self._order.id}.md")
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_rental_order_markdown(self._order))
        _logger.info(f"Rental order {self._order.id} exported to {path}")
        self.notify(f"Exported to {path}")
