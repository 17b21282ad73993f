from math import ceil
from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Label, MarkdownViewer

import db.crud
from db.models import Order
from rental.order_status import STATUS_LABELS
from utils.messages import NewOrderMessage
from utils.pure import format_money, render_order_markdown
from views.base_screen import BaseScreen

PAGE_SIZE = 5


class MyOrdersScreen(BaseScreen):
    """
    Customers browse their placed orders, newest first, 5 per page.

    Layout:
    - Markdown detail of the highlighted order at the top, with its history.
    - Orders table below with Prev/Next.
    """

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self) -> None:
        super().__init__()
        self._orders: List[Order] = []

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("<", id="btn-prev")
            yield Label(" 1 / 1 ", id="label-page")
            yield Button(">", id="btn-next")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Placed", "Status", "Items", "Total")

    @on(Button.Pressed, "#btn-refresh")
    @on(ScreenResume)
    @on(NewOrderMessage)
    def handle_refresh(self) -> None:
        self._load_orders()

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        if self.page_idx > 1:
            self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.page_idx < self.page_cnt:
            self.page_idx += 1

    def watch_page_idx(self, old: int, new: int) -> None:
        self._render_page()

    @work(exclusive=True, group="orders")
    async def _load_orders(self) -> None:
        self._orders = await db.crud.list_orders(self.app.state.cid)
        self.page_cnt = max(ceil(len(self._orders) / PAGE_SIZE), 1)
        if self.page_idx > self.page_cnt:
            self.page_idx = self.page_cnt
        else:
            self._render_page()

    def _render_page(self) -> None:
        start = (self.page_idx - 1) * PAGE_SIZE
        page = self._orders[start : start + PAGE_SIZE]

        table = self.query_one(DataTable)
        table.clear()
        for o in page:
            table.add_row(
                o.order_number,
                f"{o.created_at:%Y-%m-%d}",
                STATUS_LABELS.get(o.status, o.status),
                sum(i.quantity for i in o.items),
                format_money(o.total_amount),
                key=o.id,
            )

        self.query_one("#label-page", Label).update(f" {self.page_idx} / {self.page_cnt} ")
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt

        if page:
            table.move_cursor(row=0)
            self._render_detail(page[0].id)
        else:
            self.query_one("#md-order-detail", MarkdownViewer).document.update(
                "### You have not placed any orders yet."
            )

    @on(DataTable.RowHighlighted, "#table-orders")
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is not None:
            self._render_detail(event.row_key.value)

    @work(exclusive=True, group="detail")
    async def _render_detail(self, order_id: str) -> None:
        order = next((o for o in self._orders if o.id == order_id), None)
        if order is None:
            return
        history = await db.crud.list_order_history(order_id)
        await self.query_one("#md-order-detail", MarkdownViewer).document.update(
            render_order_markdown(order, history)
        )
