from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input, MarkdownViewer, Select

import db.crud
from db.models import Order
from rental.errors import RentEasyError
from rental.order_status import (
    ADVANCE_LABELS,
    ALL_STATUSES,
    CANCELLED,
    STATUS_LABELS,
    allowed_transitions,
    filter_orders,
    is_terminal,
    next_status,
)
from utils.logger import get_logger
from utils.messages import NewOrderMessage, OrderUpdatedMessage
from utils.pure import format_money, render_order_markdown
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal, PromptModal

_logger = get_logger(__name__)


class VendorOrdersScreen(BaseScreen):
    """
    Every customer order, filterable by status and searchable by order
    number, customer or product. The highlighted order can be moved along
    the status workflow and annotated with notes.
    """

    def __init__(self) -> None:
        super().__init__()
        self._orders: List[Order] = []
        self._selected_id: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-order-filters"):
            yield Input(placeholder="Search orders...", id="input-search")
            yield Select(
                [("All statuses", "all")] + [(STATUS_LABELS[s], s) for s in ALL_STATUSES],
                value="all",
                allow_blank=False,
                id="select-status-filter",
            )
        with Vertical():
            yield DataTable(id="table-orders")
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
        with Horizontal(id="hort-order-actions"):
            yield Button("Advance", id="btn-advance", variant="success")
            yield Button("Cancel Order", id="btn-cancel", variant="error")
            yield Select([], prompt="Set status...", id="select-set-status")
            yield Button("Edit Notes", id="btn-notes")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Customer", "Placed", "Status", "Total")
        self._refresh_actions(None)

    @on(ScreenResume)
    @on(NewOrderMessage)
    @on(OrderUpdatedMessage)
    def handle_refresh(self) -> None:
        self._load_orders()

    @on(Input.Changed, "#input-search")
    @on(Select.Changed, "#select-status-filter")
    def handle_filter_changed(self) -> None:
        self._render_table()

    @work(exclusive=True, group="orders")
    async def _load_orders(self) -> None:
        self._orders = await db.crud.list_orders()
        self._render_table()

    def _visible_orders(self) -> List[Order]:
        return filter_orders(
            self._orders,
            self.query_one("#input-search", Input).value,
            self.query_one("#select-status-filter", Select).value,
        )

    def _render_table(self) -> None:
        visible = self._visible_orders()
        table = self.query_one(DataTable)
        table.clear()
        for o in visible:
            table.add_row(
                o.order_number,
                o.customer_name,
                f"{o.created_at:%Y-%m-%d %H:%M}",
                STATUS_LABELS.get(o.status, o.status),
                format_money(o.total_amount),
                key=o.id,
            )

        ids = [o.id for o in visible]
        if self._selected_id in ids:
            table.move_cursor(row=ids.index(self._selected_id))
        elif visible:
            table.move_cursor(row=0)
        else:
            self._show_order(None)

    def _current(self) -> Optional[Order]:
        return next((o for o in self._orders if o.id == self._selected_id), None)

    @on(DataTable.RowHighlighted, "#table-orders")
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is not None:
            self._selected_id = event.row_key.value
            self._show_order(self._current())

    @work(exclusive=True, group="detail")
    async def _show_order(self, order: Optional[Order]) -> None:
        self._refresh_actions(order)
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        if order is None:
            await viewer.document.update("### No orders match the current filter.")
            return
        history = await db.crud.list_order_history(order.id)
        await viewer.document.update(render_order_markdown(order, history))

    def _refresh_actions(self, order: Optional[Order]) -> None:
        advance = self.query_one("#btn-advance", Button)
        cancel = self.query_one("#btn-cancel", Button)
        set_status = self.query_one("#select-set-status", Select)
        notes = self.query_one("#btn-notes", Button)

        if order is None:
            advance.display = False
            cancel.disabled = True
            set_status.set_options([])
            set_status.disabled = True
            notes.disabled = True
            return

        strict = self.app.state.settings.strict_status
        advance.display = order.status in ADVANCE_LABELS
        advance.label = ADVANCE_LABELS.get(order.status, "Advance")
        cancel.disabled = is_terminal(order.status)
        targets = sorted(
            allowed_transitions(order.status, strict), key=ALL_STATUSES.index
        )
        set_status.set_options([(STATUS_LABELS[s], s) for s in targets])
        set_status.disabled = not targets
        notes.disabled = False

    async def _change_status(self, new_status: str) -> None:
        order = self._current()
        if order is None:
            return
        try:
            updated = await db.crud.update_order_status(
                order.id, new_status, strict=self.app.state.settings.strict_status
            )
        except RentEasyError as e:
            _logger.warning(str(e))
            self.notify(str(e), severity="error")
            return

        self.notify(
            f"Order {updated.order_number} is now {STATUS_LABELS[updated.status]}."
        )
        self.post_message(OrderUpdatedMessage(updated.id))

    @on(Button.Pressed, "#btn-advance")
    @work(exclusive=True, group="status")
    async def handle_advance(self) -> None:
        order = self._current()
        if order is None or next_status(order.status) is None:
            return
        await self._change_status(next_status(order.status))

    @on(Button.Pressed, "#btn-cancel")
    @work(exclusive=True, group="status")
    async def handle_cancel(self) -> None:
        order = self._current()
        if order is None:
            return
        if await self.app.push_screen_wait(
            DialogModal(
                f"Cancel order {order.order_number}? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            await self._change_status(CANCELLED)

    @on(Select.Changed, "#select-set-status")
    @work(exclusive=True, group="status")
    async def handle_set_status(self, event: Select.Changed) -> None:
        if event.value is Select.BLANK:
            return
        await self._change_status(event.value)

    @on(Button.Pressed, "#btn-notes")
    @work(exclusive=True)
    async def handle_edit_notes(self) -> None:
        order = self._current()
        if order is None:
            return
        notes = await self.app.push_screen_wait(
            PromptModal(f"Notes for {order.order_number}", value=order.notes)
        )
        if notes is None or notes == order.notes:
            return
        await db.crud.update_order_notes(order.id, notes)
        self.notify("Notes saved.")
        self.post_message(OrderUpdatedMessage(order.id))
