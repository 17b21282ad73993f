from datetime import date, timedelta
from typing import Sequence

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.events import ScreenResume
from textual.widgets import MarkdownViewer, Select

import db.crud as crud
from db.models import RankedEntry
from utils.messages import ModeSwitchedMessage, NewOrderMessage, OrderUpdatedMessage
from utils.pure import format_money, generate_markdown_table
from views.base_screen import BaseScreen

PERIODS = [
    ("All time", 0),
    ("Last 30 days", 30),
    ("Last 7 days", 7),
]


def _ranked_table(title: str, column: str, entries: Sequence[RankedEntry]) -> str:
    rows = [[e.label, e.ordered, format_money(e.revenue)] for e in entries]
    table = generate_markdown_table([column, "Ordered", "Revenue"], rows, ["l", "r", "r"])
    return f"#### {title}\n\n{table or '_No orders yet._'}\n\n"


class VendorDashboardScreen(BaseScreen):
    """
    Vendor dashboard: quotation and rental counts, revenue, and the top
    categories, products and customers.
    """

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Select(PERIODS, value=0, allow_blank=False, id="select-period")
            yield MarkdownViewer(id="md-dashboard", show_table_of_contents=False)

    def on_mount(self) -> None:
        self.handle_reload()

    @on(Select.Changed, "#select-period")
    @on(NewOrderMessage)
    @on(OrderUpdatedMessage)
    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        days = self.query_one("#select-period", Select).value
        since = date.today() - timedelta(days=days) if days else None
        summary = await crud.vendor_dashboard(since=since, k=3)

        md = (
            "### Dashboard\n\n"
            f"- Quotations: {summary.quotations}\n"
            f"- Rentals: {summary.rentals}\n"
            f"- Customer Orders: {summary.orders}\n"
            f"- Revenue: {format_money(summary.revenue)}\n\n"
            + _ranked_table("Top Product Categories", "Category", summary.top_categories)
            + _ranked_table("Top Products", "Product", summary.top_products)
            + _ranked_table("Top Customers", "Customer", summary.top_customers)
        )
        await self.query_one("#md-dashboard", MarkdownViewer).document.update(md)
