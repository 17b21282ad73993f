from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label

from db.models import WishlistEntry
from utils.messages import WishlistChangedMessage
from utils.pure import format_money
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal
from views.modal_prod_detail import ProdDetailModal


class WishlistScreen(BaseScreen):
    """Products saved for later. Open one to pick dates and rent it."""

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield Label("", id="label-wishlist-count")
        yield DataTable(id="table-wishlist")
        with Horizontal(id="hort-buttons"):
            yield Button("Remove", id="btn-remove", variant="warning")
            yield Button("Clear Wishlist", id="btn-clear", variant="error")
            yield Button("Rent This", id="btn-view", variant="primary")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("PID", "Product", "Daily Rate", "Added")
        self.handle_wishlist_change()

    @on(WishlistChangedMessage)
    @on(ScreenResume)
    def handle_wishlist_change(self) -> None:
        entries = self.app.state.wishlist.entries
        table = self.query_one(DataTable)
        table.clear()
        for e in entries:
            table.add_row(
                e.pid,
                e.name,
                format_money(e.unit_price),
                f"{e.added_at:%Y-%m-%d %H:%M}",
                key=str(e.pid),
            )
        self.query_one("#label-wishlist-count", Label).update(
            f"{len(entries)} saved product(s)"
        )
        for btn_id in ("#btn-remove", "#btn-clear", "#btn-view"):
            self.query_one(btn_id, Button).disabled = not entries

    def _selected_entry(self) -> Optional[WishlistEntry]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return next(
            (e for e in self.app.state.wishlist.entries if str(e.pid) == row_key.value),
            None,
        )

    @on(Button.Pressed, "#btn-view")
    @on(DataTable.RowSelected, "#table-wishlist")
    @work()
    async def handle_view(self) -> None:
        entry = self._selected_entry()
        if entry is None:
            return
        if await self.app.push_screen_wait(ProdDetailModal(entry.pid)):
            self.handle_wishlist_change()
            await self.refresh_sidebar()

    @on(Button.Pressed, "#btn-remove")
    def handle_remove(self) -> None:
        entry = self._selected_entry()
        if entry is None:
            return
        self.app.state.wishlist.remove(entry.pid)
        self.notify(f"{entry.name} removed from wishlist.")
        self.post_message(WishlistChangedMessage())

    @on(Button.Pressed, "#btn-clear")
    @work()
    async def handle_clear(self) -> None:
        if await self.app.push_screen_wait(
            DialogModal(
                "Remove every product from the wishlist?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            self.app.state.wishlist.clear()
            self.post_message(WishlistChangedMessage())
