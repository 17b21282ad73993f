from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import Resize, ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from db.crud import get_customer
from utils.messages import ModeSwitchedMessage, WorkspaceExitMessage
from utils.pure import format_money, generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal
from views.modal_resize import ResizeScreenPromptModal


class Sidebar(Container):
    init_mode = ""

    def compose(self) -> ComposeResult:
        yield Label("Workspace", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Switch Workspace", id="btn-exit-workspace", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_mode = self.app.current_mode

        state = self.app.state
        if not state.role:
            return

        if state.role == "customer":
            modes = self.app.CUSTOMER_MODES
        else:
            modes = self.app.VENDOR_MODES

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in modes.items()]
        )
        await self.refresh_info()
        self.highlight_item(self.init_mode)

    async def refresh_info(self) -> None:
        """Workspace summary table, the cart figures change while browsing."""
        state = self.app.state
        if state.role == "customer":
            customer = await get_customer(state.cid)
            summary = state.cart.summary()
            table_rows = [
                ["Customer", customer.name if customer else state.cid],
                ["Cart", f"{summary.item_count} items"],
                ["Cart Total", format_money(summary.total)],
                ["Wishlist", len(state.wishlist)],
            ]
        elif state.role == "vendor":
            table_rows = [["Role", "Vendor"]]
        else:
            return

        md_table_str = generate_markdown_table(None, [["", ""]] + table_rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-exit-workspace")
    @work()
    async def handle_exit_workspace(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Leave this workspace?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(WorkspaceExitMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        :return:
        """

        # auto gen titles and subtitles
        self.app.title = "RentEasy"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v):
                if k in self.app.VENDOR_MODES:
                    self.sub_title = self.app.VENDOR_MODES[k]
                elif k in self.app.CUSTOMER_MODES:
                    self.sub_title = self.app.CUSTOMER_MODES[k]

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_resize(self, event: Resize) -> None:
        min_width = 80
        min_height = 24
        if event.size.width < min_width or event.size.height < min_height:
            self.app.push_screen(ResizeScreenPromptModal(min_width, min_height))

    async def on_screen_resume(self, event: ScreenResume) -> None:
        await self.refresh_sidebar()

    async def refresh_sidebar(self) -> None:
        if self._show_sidebar:
            for sidebar in self.query(Sidebar):
                await sidebar.refresh_info()

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
