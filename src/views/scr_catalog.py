from math import ceil
from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.reactive import reactive
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label, Select

import db.crud
from rental.errors import RentEasyError
from utils.pure import format_money
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal

PAGE_SIZE = 10

SORT_OPTIONS = [
    ("Default order", ("pid", "asc")),
    ("Name A-Z", ("name", "asc")),
    ("Name Z-A", ("name", "desc")),
    ("Price: low to high", ("price", "asc")),
    ("Price: high to low", ("price", "desc")),
]


def _parse_price(value: str) -> Optional[float]:
    try:
        return float(value) if value.strip() else None
    except ValueError:
        return None


class CatalogScreen(BaseScreen):
    """
    Product catalog, for customers only.
    An empty search lists everything; category, daily rate range and sort
    order narrow and arrange the result.
    """

    # only here to be displayed in footer
    BINDINGS = [
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
    ]

    page_idx = reactive(1)
    page_cnt = reactive(1)
    query_str = reactive("")

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Input(
            id="input-search", placeholder="Search by name, category or description..."
        )
        with Horizontal(id="hort-catalog-filters"):
            yield Select([], prompt="All categories", id="select-category")
            yield Input(
                placeholder="Min rate",
                id="input-min-price",
                type="number",
                validators=[Number(minimum=0)],
            )
            yield Input(
                placeholder="Max rate",
                id="input-max-price",
                type="number",
                validators=[Number(minimum=0)],
            )
            yield Select(
                SORT_OPTIONS,
                value=SORT_OPTIONS[0][1],
                allow_blank=False,
                id="select-sort",
            )
        yield DataTable(id="table-search-result")
        with Horizontal(id="hort-table-control"):
            yield Button("<", id="btn-prev")
            yield Input("1", id="input-page", type="integer")  # page idx start from 1
            yield Label(" / 1", id="label-total-page-cnt")
            yield Button(">", id="btn-next")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("PID", "Product", "Category", "Daily Rate", "In Stock")

        self.load_categories()
        self.update_search_result("", 1)
        self.query_one("#input-search").focus()

    @work(group="categories")
    async def load_categories(self) -> None:
        categories = await db.crud.list_categories()
        self.query_one("#select-category", Select).set_options([(c, c) for c in categories])

    def _filters(self) -> dict:
        category = self.query_one("#select-category", Select).value
        sort_by, sort_order = self.query_one("#select-sort", Select).value
        return {
            "category": None if category is Select.BLANK else category,
            "min_price": _parse_price(self.query_one("#input-min-price", Input).value),
            "max_price": _parse_price(self.query_one("#input-max-price", Input).value),
            "sort_by": sort_by,
            "sort_order": sort_order,
        }

    def _back_to_first_page(self) -> None:
        if self.page_idx == 1:
            self.update_search_result(self.query_str, 1)
        else:
            self.page_idx = 1

    @on(Input.Changed, "#input-search")
    def handle_search_changed(self, message: Input.Changed) -> None:
        self.query_str = message.value
        self._back_to_first_page()

    @on(Select.Changed, "#select-category")
    @on(Select.Changed, "#select-sort")
    @on(Input.Changed, "#input-min-price")
    @on(Input.Changed, "#input-max-price")
    def handle_filter_changed(self) -> None:
        self._back_to_first_page()

    @on(Input.Changed, "#input-page")
    def handle_page_input(self, message: Input.Changed) -> None:
        if message.value and message.value.isdigit():
            self.page_idx = int(message.value)

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        self.page_idx -= 1

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        self.page_idx += 1

    def validate_page_idx(self, page_idx: int) -> int:
        return max(1, min(page_idx, self.page_cnt))

    def watch_page_idx(self, _, new_page_idx: int) -> None:
        page_input = self.query_one("#input-page", Input)
        if page_input.value != str(new_page_idx):
            page_input.value = str(new_page_idx)
        self.update_search_result(self.query_str, new_page_idx)

    @on(DataTable.RowSelected, "#table-search-result")
    @work()
    async def handle_view_product(self, event: DataTable.RowSelected) -> None:
        pid = int(event.data_table.get_row(event.row_key)[0])
        if await self.app.push_screen_wait(ProdDetailModal(pid)):
            await self.refresh_sidebar()

    @work(exclusive=True)
    async def update_search_result(self, query: str, page: int) -> None:
        try:
            products, total_res_cnt = await db.crud.search_products(
                query, page, PAGE_SIZE, **self._filters()
            )
        except RentEasyError as e:
            self.notify(str(e), severity="error")
            return

        table = self.query_one(DataTable)
        table.clear()
        table.add_rows(
            [
                (p.pid, p.name, p.category, format_money(p.unit_price), p.stock_count)
                for p in products
            ]
        )

        self.page_cnt = max(ceil(total_res_cnt / PAGE_SIZE), 1)
        self.query_one("#label-total-page-cnt", Label).update(f" / {self.page_cnt}")
        self.query_one("#input-page", Input).validators = [
            Number(minimum=1, maximum=self.page_cnt)
        ]
        self.query_one("#btn-prev", Button).disabled = page <= 1
        self.query_one("#btn-next", Button).disabled = page >= self.page_cnt
