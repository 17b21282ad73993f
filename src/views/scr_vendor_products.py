from __future__ import annotations

from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, Input, Label, MarkdownViewer, OptionList
from textual.widgets.option_list import Option

import db.crud
from rental.errors import RentEasyError
from utils.pure import format_money, generate_markdown_table
from views.base_screen import BaseScreen
from views.modal_dialog import PromptModal

SEARCH_LIMIT = 20

# input id -> update_product keyword
_EDIT_FIELDS = {
    "#input-prod-name": "name",
    "#input-prod-category": "category",
    "#input-prod-descr": "descr",
}
_EDIT_AMOUNTS = {
    "#input-prod-rate": "daily_rate",
    "#input-prod-replacement": "replacement_value",
}


class VendorProductsScreen(BaseScreen):
    """
    Vendors search the catalog, pick a product and edit its details,
    daily rate and stock.
    """

    current_pid: Optional[int] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Input(id="input-prod-search", placeholder="Search for product...")
            yield OptionList(id="optlist-prods")
            yield MarkdownViewer(id="md-prod", show_table_of_contents=False)
            with Horizontal(id="hort-prod-edit"):
                with Vertical():
                    yield Label("Name")
                    yield Input(id="input-prod-name")
                    yield Label("Category")
                    yield Input(id="input-prod-category")
                with Vertical():
                    yield Label("Daily Rate")
                    yield Input(
                        id="input-prod-rate",
                        type="number",
                        validators=[Number(minimum=0.0)],
                    )
                    yield Label("Replacement Value")
                    yield Input(
                        id="input-prod-replacement",
                        type="number",
                        validators=[Number(minimum=0.0)],
                    )
                with Vertical(id="vert-prod-descr"):
                    yield Label("Description")
                    yield Input(id="input-prod-descr")
            with Horizontal(id="hort-prod-actions"):
                yield Button("Update Stock", id="btn-update-stock")
                yield Button("Save", id="btn-save-product", variant="success")

    def on_mount(self) -> None:
        self.query_one("#input-prod-search", Input).focus()
        for widget_id in ("#md-prod", "#hort-prod-edit", "#hort-prod-actions"):
            self.query_one(widget_id).add_class("hidden")
        self.update_optlist("")

    @on(Input.Changed, "#input-prod-search")
    def handle_search_changed(self, message: Input.Changed) -> None:
        self.query_one("#optlist-prods").remove_class("hidden")
        self.update_optlist(message.value)

    @on(OptionList.OptionSelected, "#optlist-prods")
    def handle_product_selected(self, message: OptionList.OptionSelected) -> None:
        self.current_pid = int(message.option.id)
        self.render_product()

        self.query_one("#optlist-prods").add_class("hidden")
        for widget_id in ("#md-prod", "#hort-prod-edit", "#hort-prod-actions"):
            self.query_one(widget_id).remove_class("hidden")

    @work(exclusive=True, group="search")
    async def update_optlist(self, query: str) -> None:
        results, _ = await db.crud.search_products(query, 1, SEARCH_LIMIT, sort_by="name")

        opt_list = self.query_one("#optlist-prods", OptionList)
        opt_list.clear_options()
        opt_list.add_options(
            [Option(f"{p.pid} {p.name} ({p.category})", id=str(p.pid)) for p in results]
        )

    @work(exclusive=True, group="detail")
    async def render_product(self) -> None:
        prod = await db.crud.get_product(self.current_pid)
        if prod is None:
            self.notify(f"Product {self.current_pid} not found.", severity="error")
            return

        rows = [
            ["PID", prod.pid],
            ["Name", prod.name],
            ["Category", prod.category],
            ["Daily Rate", format_money(prod.unit_price)],
            ["Replacement Value", format_money(prod.replacement_value)],
            ["In Stock", prod.stock_count],
            ["Description", prod.descr],
        ]
        rules = [
            [r.pricing_type, format_money(r.base_price), "yes" if r.is_active else "no"]
            for r in prod.pricing_rules
        ]
        md = (
            f"### {prod.name}\n\n"
            + generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
            + "\n\n#### Pricing Rules\n\n"
            + (generate_markdown_table(["Type", "Price", "Active"], rules) or "_none_")
        )
        await self.query_one("#md-prod", MarkdownViewer).document.update(md)

        # prefill inputs with current values
        self.query_one("#input-prod-name", Input).value = prod.name
        self.query_one("#input-prod-category", Input).value = prod.category
        self.query_one("#input-prod-descr", Input).value = prod.descr
        self.query_one("#input-prod-rate", Input).value = f"{prod.unit_price:.2f}"
        self.query_one("#input-prod-replacement", Input).value = f"{prod.replacement_value:.2f}"

    @on(Button.Pressed, "#btn-save-product")
    @work(exclusive=True, group="update")
    async def handle_save(self) -> None:
        prod = await db.crud.get_product(self.current_pid)
        if prod is None:
            return

        current = {
            "name": prod.name,
            "category": prod.category,
            "descr": prod.descr,
            "daily_rate": prod.unit_price,
            "replacement_value": prod.replacement_value,
        }
        changes = {}
        for selector, key in _EDIT_FIELDS.items():
            value = self.query_one(selector, Input).value.strip()
            if value != current[key]:
                changes[key] = value
        for selector, key in _EDIT_AMOUNTS.items():
            amount_input = self.query_one(selector, Input)
            try:
                value = float(amount_input.value)
            except ValueError:
                amount_input.focus()
                amount_input.add_class("-invalid")
                return
            if value != current[key]:
                changes[key] = value

        if not changes:
            self.notify("Nothing to update.", severity="warning")
            return

        try:
            await db.crud.update_product(prod.pid, **changes)
        except RentEasyError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"{prod.name} updated.")
        self.render_product()
        self.update_optlist(self.query_one("#input-prod-search", Input).value)

    @on(Button.Pressed, "#btn-update-stock")
    @work(exclusive=True, group="update")
    async def handle_update_stock(self) -> None:
        prod = await db.crud.get_product(self.current_pid)
        if prod is None:
            return
        value = await self.app.push_screen_wait(
            PromptModal(f"Units of {prod.name} in stock", value=str(prod.stock_count))
        )
        if value is None or value == str(prod.stock_count):
            return
        if not value.isdigit():
            self.notify("Stock must be a whole number.", severity="error")
            return

        try:
            updated = await db.crud.update_stock(prod.pid, int(value))
        except RentEasyError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"{updated.name}: {updated.stock_count} in stock.")
        self.render_product()
