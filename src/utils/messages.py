from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class WorkspaceExitMessage(Message):
    """
    broadcasted when the user leaves the current workspace,
    the app goes back to the welcome screen
    """

    bubble = True


class WorkspaceEnteredMessage(Message):
    """
    Fired once a workspace is chosen, so screens can refresh
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired whenever the cart store changes (add, quantity edit, remove, clear).
    Triggers a refresh of the cart screen.

    If posted from outside CartScreen, make sure to post at App level
    """

    bubble = True


class WishlistChangedMessage(Message):
    """
    Fired when a product is added to or removed from the wishlist
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when a new order is placed.
    Listened to by my orders and the vendor order list
    """

    bubble = True


class OrderUpdatedMessage(Message):
    """
    Fired after an order's status or notes changed
    """

    bubble = True

    def __init__(self, order_id: str) -> None:
        super().__init__()
        self.order_id = order_id


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
