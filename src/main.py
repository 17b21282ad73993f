from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from utils.logger import get_logger
from utils.messages import (
    ModeSwitchedMessage,
    QuitRequestedMessage,
    WorkspaceEnteredMessage,
    WorkspaceExitMessage,
)
from utils.state import GlobalState
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_my_orders import MyOrdersScreen
from views.scr_rental_order import RentalOrderScreen
from views.scr_vendor_dashboard import VendorDashboardScreen
from views.scr_vendor_orders import VendorOrdersScreen
from views.scr_vendor_products import VendorProductsScreen
from views.scr_welcome import WelcomeScreen
from views.scr_wishlist import WishlistScreen

_logger = get_logger(__name__)


class RentEasyApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "wishlist": WishlistScreen,
        "cart": CartScreen,
        "my_orders": MyOrdersScreen,
        "rental_order": RentalOrderScreen,
        "vendor_orders": VendorOrdersScreen,
        "vendor_products": VendorProductsScreen,
        "vendor_dashboard": VendorDashboardScreen,
    }

    CUSTOMER_MODES = {
        "catalog": "Browse Products",
        "wishlist": "Wishlist",
        "cart": "Cart",
        "my_orders": "My Orders",
    }
    VENDOR_MODES = {
        "vendor_dashboard": "Dashboard",
        "rental_order": "Rental Orders",
        "vendor_orders": "Order Management",
        "vendor_products": "Products",
    }

    CSS_PATH = [
        "styles/index.tcss",
        "styles/welcome.tcss",
        "styles/catalog.tcss",
        "styles/cart.tcss",
        "styles/orders.tcss",
        "styles/rental_order.tcss",
        "styles/vendor.tcss",
    ]

    state: GlobalState

    def __init__(self):
        super().__init__()
        self.state = GlobalState()

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        _logger.debug(f"Starting with {self.state.settings}")
        self.main_flow()

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(WorkspaceEnteredMessage)
    def handle_workspace_entered(self):
        _logger.info(f"Entered the {self.state.role} workspace (customer {self.state.cid})")

    @on(ModeSwitchedMessage)
    def handle_mode_switched(self, message: ModeSwitchedMessage):
        _logger.debug(f"Mode {message.old_mode} -> {message.new_mode}")

    @on(WorkspaceExitMessage)
    @work
    async def handle_workspace_exit(self):
        await self.state.end_session()
        self.notify("Left the workspace.")
        self.main_flow()

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        if self.state.role:
            await self.state.end_session()
        self.exit()

    @work
    async def main_flow(self):
        await self.push_screen_wait(WelcomeScreen())
        if self.state.role == "customer":
            new_mode = "catalog"
        elif self.state.role == "vendor":
            new_mode = "vendor_dashboard"
        else:
            return
        self.post_message(ModeSwitchedMessage(self.current_mode, new_mode))
        await self.switch_mode(new_mode)


def main():
    app = RentEasyApp()
    app.run()


if __name__ == "__main__":
    main()
