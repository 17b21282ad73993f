import os
import tempfile
import unittest
from datetime import date

from db import crud
from db import database as db_database
from db.models import ProductRef, RentalDates
from utils.config import Settings
from utils.state import GlobalState

DATES = RentalDates(date(2024, 5, 1), date(2024, 5, 3))
TENT = ProductRef(pid=2007, name="Camping Tent", unit_price=120.0)


class GlobalStateTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.temp_dir.name, "state.sqlite")
        db_database.use_database(db_path)
        self.state = GlobalState(settings=Settings(db_path=db_path))

    def tearDown(self):
        self.temp_dir.cleanup()

    async def test_cart_changes_are_saved(self):
        await self.state.start_session("customer", 1001)
        self.assertEqual(len(self.state.cart), 0)

        self.state.cart.add_item(TENT, 1, DATES)
        self.state.cart.update_quantity(self.state.cart.items[0].id, 4)
        self.state.wishlist.add(TENT)
        await self.state.flush()

        saved = await crud.load_cart(1001)
        self.assertEqual(len(saved), 1)
        self.assertEqual(saved[0].quantity, 4)
        self.assertEqual([e.pid for e in await crud.load_wishlist(1001)], [2007])

    async def test_session_reload_and_end(self):
        await self.state.start_session("customer", 1002)
        self.state.cart.add_item(TENT, 2, DATES)
        self.state.coupon_code = "SAVE10"
        await self.state.end_session()

        self.assertIsNone(self.state.role)
        self.assertIsNone(self.state.cid)
        self.assertIsNone(self.state.coupon_code)
        self.assertEqual(len(self.state.cart), 0)

        other = GlobalState()
        await other.start_session("customer", 1002)
        self.assertEqual(other.cart.item_count(), 2)

    async def test_vendor_session_has_no_cart_storage(self):
        await self.state.start_session("vendor", 1001)
        self.assertIsNone(self.state.cid)
        self.state.cart.add_item(TENT, 1, DATES)
        await self.state.flush()
        for cid in (1001, 1002, 1003):
            self.assertEqual(await crud.load_cart(cid), [])


if __name__ == "__main__":
    unittest.main()
