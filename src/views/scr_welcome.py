from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Label, OptionList, TabbedContent, TabPane
from textual.widgets.option_list import Option

import db.crud
from utils.messages import WorkspaceEnteredMessage
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal


class WelcomeScreen(BaseScreen):
    """
    Pick a workspace: shop as one of the demo customers, or manage orders as
    the vendor. Dismisses once app.state has a role.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Welcome", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-welcome"):
            with TabPane("Customer", id="tab-customer"):
                with Vertical(id="div-customer"):
                    yield Label("Continue as")
                    yield OptionList(id="optlist-customers")
                    with Horizontal(id="div-welcome-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button(
                            "Start Shopping", id="btn-customer", variant="primary"
                        )

            with TabPane("Vendor", id="tab-vendor"):
                with Vertical(id="div-vendor"):
                    yield Label(
                        "Build quotations and rental orders, "
                        "and move customer orders through their statuses."
                    )
                    with Horizontal(id="div-vendor-btns"):
                        yield Button(
                            "Open Vendor Workspace", id="btn-vendor", variant="primary"
                        )

    async def on_mount(self):
        customers = await db.crud.list_customers()
        opt_list = self.query_one("#optlist-customers", OptionList)
        opt_list.add_options(
            [Option(f"{c.name} <{c.email}>", id=str(c.cid)) for c in customers]
        )
        if customers:
            opt_list.highlighted = 0
        opt_list.focus()

    @on(OptionList.OptionSelected, "#optlist-customers")
    @on(Button.Pressed, "#btn-customer")
    @work(exclusive=True)
    async def handle_customer_enter(self) -> None:
        opt_list = self.query_one("#optlist-customers", OptionList)
        if opt_list.highlighted is None:
            self.notify("Pick a customer first.", severity="error")
            return

        cid = int(opt_list.get_option_at_index(opt_list.highlighted).id)
        await self.app.state.start_session("customer", cid)
        customer = await db.crud.get_customer(cid)

        self.notify(f"Hello {customer.name}!")
        self.app.post_message(WorkspaceEnteredMessage())
        self.dismiss()

    @on(Button.Pressed, "#btn-vendor")
    @work(exclusive=True)
    async def handle_vendor_enter(self) -> None:
        await self.app.state.start_session("vendor")

        self.notify("Vendor workspace")
        self.app.post_message(WorkspaceEnteredMessage())
        self.dismiss()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
