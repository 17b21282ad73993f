from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Coroutine, Dict, Literal, Optional, Set

import db.crud as crud
from rental.cart import CartItems, CartStore, WishlistStore
from utils.config import Settings, load_settings
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens through app.state.

    Fields:
      - role: "customer" | "vendor" | None before a workspace is chosen
      - cid: customers.cid of the active customer (customer workspace only)
      - settings: runtime settings, see utils.config
      - cart / wishlist: stores for the active customer; every change is
        written back to the database in the background
      - coupon_code: coupon typed at checkout, kept while the app runs
    """

    role: Optional[Literal["customer", "vendor"]] = None
    cid: Optional[int] = None
    settings: Settings = field(default_factory=load_settings)
    cart: CartStore = field(default_factory=CartStore)
    wishlist: WishlistStore = field(default_factory=WishlistStore)
    coupon_code: Optional[str] = None

    _pending: Set[asyncio.Task] = field(default_factory=set, repr=False, init=False)
    _tails: Dict[str, asyncio.Task] = field(default_factory=dict, repr=False, init=False)

    def __post_init__(self):
        self.cart.listener = self._on_cart_changed
        self.wishlist.listener = self._on_wishlist_changed

    async def start_session(
        self, role: Literal["customer", "vendor"], cid: Optional[int] = None
    ) -> None:
        """Enter a workspace; for customers, load their cart and wishlist."""
        self.role = role
        self.cid = cid if role == "customer" else None
        self.coupon_code = None
        if self.cid is None:
            self.cart.load(())
            self.wishlist.load(())
            return
        self.cart.load(await crud.load_cart(self.cid))
        self.wishlist.load(await crud.load_wishlist(self.cid))
        _logger.debug(
            f"Session started for customer {self.cid}: "
            f"{len(self.cart)} cart lines, {len(self.wishlist)} wishlist entries"
        )

    async def end_session(self) -> None:
        """
        Leave the workspace. Waits for outstanding saves first.
        """
        await self.flush()
        self.role = None
        self.cid = None
        self.coupon_code = None
        self.cart.load(())
        self.wishlist.load(())

    async def flush(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _on_cart_changed(self, items: CartItems) -> None:
        if self.cid is not None:
            self._spawn(crud.save_cart(self.cid, items), "cart")

    def _on_wishlist_changed(self, entries) -> None:
        if self.cid is not None:
            self._spawn(crud.save_wishlist(self.cid, entries), "wishlist")

    def _spawn(self, coro: Coroutine[Any, Any, None], what: str) -> None:
        """
        Fire and forget a save; failures are logged, never retried.
        Saves of the same store run one after another so the newest wins.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            _logger.warning(f"No event loop running, {what} not saved.")
            return

        previous = self._tails.get(what)

        async def run_after_previous() -> None:
            if previous is not None:
                await asyncio.gather(previous, return_exceptions=True)
            await coro

        task = loop.create_task(run_after_previous())
        self._tails[what] = task
        self._pending.add(task)

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if self._tails.get(what) is t:
                del self._tails[what]
            if not t.cancelled() and t.exception() is not None:
                _logger.error(f"Saving {what} failed", exc_info=t.exception())

        task.add_done_callback(_done)
