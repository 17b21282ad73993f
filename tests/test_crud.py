import asyncio
import os
import sys
import tempfile
import unittest
from dataclasses import replace
from datetime import date, datetime

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.models import (  # noqa: E402
    Address,
    CheckoutDetails,
    ProductRef,
    RentalDates,
    WishlistEntry,
)
from rental import cart, workflow  # noqa: E402
from rental.checkout import build_order_request  # noqa: E402
from rental.errors import (  # noqa: E402
    InvalidTransitionError,
    OrderNotFoundError,
    PermissionDeniedError,
    ProductNotFoundError,
    ValidationError,
)

BILLING = Address(
    full_name="Jane Smith",
    email="jane@example.com",
    phone="+91 98450 11002",
    street="4 Park Street",
    city="Kolkata",
    postal_code="700016",
)


class CrudTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.use_database(self.db_path)

    async def asyncSetUp(self):
        # Touch initialization by opening a connection
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT name FROM sqlite_master WHERE type='table';")
            await cur.fetchall()
            await cur.close()

    def tearDown(self):
        self.temp_dir.cleanup()

    # ---------- Customers ----------

    async def test_customers(self):
        customers = await crud.list_customers()
        self.assertEqual([c.cid for c in customers], [1001, 1002, 1003])

        jane = await crud.get_customer(1002)
        self.assertEqual(jane.email, "jane@example.com")
        self.assertIsNone(await crud.get_customer(424242))

    # ---------- Catalog ----------

    async def test_search_products(self):
        products, total = await crud.search_products("   ", page=1, page_size=5)
        self.assertEqual(total, 7)
        self.assertEqual(len(products), 5)

        _, total_p2 = await crud.search_products("", page=2, page_size=5)
        self.assertEqual(total_p2, 7)

        mobility, total = await crud.search_products("mobility")
        self.assertEqual(total, 2)
        self.assertTrue(all(p.category == "Mobility" for p in mobility))

        # any word matches
        _, total = await crud.search_products("camera tent")
        self.assertEqual(total, 2)

    async def test_search_products_filters(self):
        self.assertEqual(
            await crud.list_categories(),
            ["Electronics", "Home Care", "Mobility", "Outdoor", "Respiratory"],
        )

        electronics, total = await crud.search_products("", category="electronics")
        self.assertEqual(total, 2)
        self.assertEqual({p.pid for p in electronics}, {2005, 2006})

        # bounds apply to the daily rate
        in_range, total = await crud.search_products("", min_price=100, max_price=400)
        self.assertEqual(total, 3)
        self.assertEqual([p.pid for p in in_range], [2004, 2005, 2007])

        cheap, _ = await crud.search_products("mobility", max_price=40)
        self.assertEqual([p.pid for p in cheap], [2003])

    async def test_search_products_sort(self):
        by_price, _ = await crud.search_products("", sort_by="price")
        self.assertEqual([p.pid for p in by_price], [2003, 2001, 2002, 2007, 2004, 2005, 2006])

        by_price_desc, _ = await crud.search_products("", sort_by="price", sort_order="desc")
        self.assertEqual([p.pid for p in by_price_desc], [2006, 2005, 2004, 2007, 2002, 2001, 2003])

        by_name, _ = await crud.search_products("", sort_by="name")
        self.assertEqual([p.pid for p in by_name], [2007, 2005, 2002, 2004, 2006, 2003, 2001])

        # sorted before paging
        page_two, total = await crud.search_products("", page=2, page_size=3, sort_by="name")
        self.assertEqual(total, 7)
        self.assertEqual([p.pid for p in page_two], [2004, 2006, 2003])

        with self.assertRaises(ValidationError):
            await crud.search_products("", sort_by="stock")
        with self.assertRaises(ValidationError):
            await crud.search_products("", sort_order="up")

    async def test_search_wildcards_are_literal(self):
        for query in ("%", "_", "100%"):
            _, total = await crud.search_products(query)
            self.assertEqual(total, 0, query)

        await crud.update_product(2007, name="Tent_XL 100% Waterproof")
        found, _ = await crud.search_products("100%")
        self.assertEqual([p.pid for p in found], [2007])
        found, _ = await crud.search_products("t_x")
        self.assertEqual([p.pid for p in found], [2007])

    async def test_get_product_daily_rate(self):
        wheelchair = await crud.get_product(2001)
        self.assertEqual(wheelchair.unit_price, 50.0)
        self.assertEqual(len(wheelchair.pricing_rules), 2)

        # inactive hourly rule is skipped
        self.assertEqual((await crud.get_product(2004)).unit_price, 150.0)
        # no daily rule, first active rule is used
        self.assertEqual((await crud.get_product(2006)).unit_price, 1500.0)

        self.assertIsNone(await crud.get_product(999999))

    # ---------- Cart & wishlist ----------

    async def test_cart_round_trip(self):
        self.assertEqual(await crud.load_cart(1001), [])

        dates = RentalDates(date(2024, 3, 1), date(2024, 3, 4))
        items = cart.add_item((), ProductRef(2001, "Wheelchair", 50.0), 2, dates)
        items = cart.add_item(items, ProductRef(2003, "Walking Frame", 30.0), 1, dates)
        await crud.save_cart(1001, items)

        loaded = await crud.load_cart(1001)
        self.assertEqual(tuple(loaded), items)
        self.assertEqual(await crud.load_cart(1002), [])

        await crud.save_cart(1001, items[1:])
        self.assertEqual([i.product.pid for i in await crud.load_cart(1001)], [2003])

        await crud.save_cart(1001, ())
        self.assertEqual(await crud.load_cart(1001), [])

    async def test_wishlist_round_trip(self):
        entries = [
            WishlistEntry(2005, "DSLR Camera Kit", 400.0, datetime(2024, 1, 1, 9, 0)),
            WishlistEntry(2002, "Hospital Bed", 80.0, datetime(2024, 1, 2, 9, 0)),
        ]
        await crud.save_wishlist(1003, entries)
        self.assertEqual(await crud.load_wishlist(1003), entries)

        await crud.save_wishlist(1003, entries[:1])
        self.assertEqual(len(await crud.load_wishlist(1003)), 1)

    # ---------- Orders ----------

    async def test_seeded_orders(self):
        orders = await crud.list_orders()
        self.assertEqual([o.order_number for o in orders], ["R0003", "R0002", "R0001"])

        mike = await crud.list_orders(1003)
        self.assertEqual(len(mike), 1)
        self.assertEqual(mike[0].applied_coupon, "SAVE10")
        self.assertEqual(mike[0].items[0].quantity, 2)
        self.assertEqual(mike[0].delivery_address.city, "Mumbai")

        self.assertIsNone(await crud.get_order("missing"))

    async def test_place_order(self):
        dates = RentalDates(date(2024, 3, 1), date(2024, 3, 3))
        items = cart.add_item((), ProductRef(2002, "Hospital Bed", 80.0), 1, dates)
        request = build_order_request(items, CheckoutDetails(billing_address=BILLING), "FLAT50")

        when = datetime(2030, 1, 1, 12, 0)
        order_id = await crud.place_order(1002, request, when)
        self.assertRegex(order_id, r"^order_\d+_[a-z0-9]{5}$")

        order = await crud.get_order(order_id)
        self.assertRegex(order.order_number, r"^ORD-\d+-[A-Z0-9]{5}$")
        self.assertEqual(order.status, "pending")
        self.assertEqual(order.customer_name, "Jane Smith")
        self.assertEqual(order.delivery_address, BILLING)
        self.assertAlmostEqual(order.subtotal, 160)
        self.assertAlmostEqual(order.discount_amount, 50)
        self.assertAlmostEqual(order.total_amount, 160 + 16 + 50 - 50)
        self.assertEqual(order.items[0].rental_end, date(2024, 3, 3))

        # newest first
        self.assertEqual((await crud.list_orders(1002))[0].id, order_id)

        history = await crud.list_order_history(order_id)
        self.assertEqual([e.action for e in history], ["Order created"])

    async def test_update_order_status(self):
        updated = await crud.update_order_status("order_seed_3", "completed")
        self.assertEqual(updated.status, "completed")
        self.assertEqual((await crud.get_order("order_seed_3")).status, "completed")

        history = await crud.list_order_history("order_seed_3")
        self.assertEqual(history[-1].action, "Status updated")
        self.assertEqual(history[-1].details, "Status changed from in-progress to completed")

        # terminal now, even in lenient mode
        with self.assertRaises(InvalidTransitionError):
            await crud.update_order_status("order_seed_3", "pending", strict=False)

    async def test_update_order_status_rejected_is_not_written(self):
        before = await crud.list_order_history("order_seed_2")
        with self.assertRaises(InvalidTransitionError):
            await crud.update_order_status("order_seed_2", "completed")
        self.assertEqual((await crud.get_order("order_seed_2")).status, "pending")
        self.assertEqual(await crud.list_order_history("order_seed_2"), before)

        # lenient mode allows the jump
        updated = await crud.update_order_status("order_seed_2", "completed", strict=False)
        self.assertEqual(updated.status, "completed")

    async def test_update_order_status_missing(self):
        with self.assertRaises(OrderNotFoundError):
            await crud.update_order_status("missing", "confirmed")

    async def test_update_order_notes(self):
        order = await crud.update_order_notes(
            "order_seed_1", "Leave with security", datetime(2030, 1, 1)
        )
        self.assertEqual(order.notes, "Leave with security")
        self.assertEqual((await crud.get_order("order_seed_1")).notes, "Leave with security")

        history = await crud.list_order_history("order_seed_1")
        self.assertEqual(history[-1].action, "Notes updated")

        with self.assertRaises(OrderNotFoundError):
            await crud.update_order_notes("missing", "x")

    # ---------- Rental orders ----------

    async def test_seeded_rental_order(self):
        order = await crud.get_rental_order("R0001")
        self.assertEqual(order.stage, workflow.QUOTATION)
        self.assertEqual(order.customer, "John Doe")
        self.assertAlmostEqual(order.total, 1000)
        self.assertIsNone(await crud.get_rental_order("missing"))

    async def test_rental_order_save_and_update(self):
        order = workflow.new_rental_order("Acme Clinic")
        order = workflow.update_line(order, 1, quantity=3, unit_price=100.0, tax=18.0)
        order = workflow.add_line(order, 2002, "Hospital Bed", 1, 80.0)
        await crud.save_rental_order(order)

        loaded = await crud.get_rental_order(order.id)
        self.assertEqual(loaded, order)

        order = workflow.send(workflow.update_prices(loaded, "premium"))
        order = workflow.remove_line(order, 2)
        await crud.save_rental_order(order)

        loaded = await crud.get_rental_order(order.id)
        self.assertEqual(loaded.stage, workflow.QUOTATION_SENT)
        self.assertEqual(loaded.price_list, "premium")
        self.assertEqual(len(loaded.order_lines), 1)
        self.assertEqual(loaded.order_lines[0].unit_price, 150.0)

        listed = await crud.list_rental_orders()
        self.assertEqual(listed[0], (order.id, "Acme Clinic", workflow.QUOTATION_SENT))
        self.assertIn(("R0001", "John Doe", workflow.QUOTATION), listed)

    async def test_rental_order_stage_cannot_go_back(self):
        order = workflow.new_rental_order("Acme Clinic")
        order = workflow.update_line(order, 1, quantity=2, unit_price=100.0)
        await crud.save_rental_order(order)
        order = workflow.send(order)
        await crud.save_rental_order(order)
        order = workflow.confirm(order)
        await crud.save_rental_order(order)

        repriced_line = replace(order.order_lines[0], unit_price=999.0)
        with self.assertRaises(InvalidTransitionError):
            await crud.save_rental_order(
                replace(order, stage=workflow.QUOTATION, order_lines=(repriced_line,))
            )
        with self.assertRaises(PermissionDeniedError):
            await crud.save_rental_order(replace(order, order_lines=(repriced_line,)))
        with self.assertRaises(PermissionDeniedError):
            extra_line = replace(order.order_lines[0], line_id=2)
            await crud.save_rental_order(
                replace(order, order_lines=order.order_lines + (extra_line,))
            )

        stored = await crud.get_rental_order(order.id)
        self.assertEqual(stored.order_lines, order.order_lines)
        self.assertEqual(stored.stage, workflow.RENTAL_ORDER)
        self.assertEqual(stored.order_lines[0].unit_price, 100.0)

        cancelled = workflow.cancel(order)
        await crud.save_rental_order(cancelled)
        with self.assertRaises(InvalidTransitionError):
            await crud.save_rental_order(order)
        self.assertEqual((await crud.get_rental_order(order.id)).stage, workflow.CANCELLED)

    async def test_rental_order_cannot_skip_stages(self):
        seeded = await crud.get_rental_order("R0001")
        with self.assertRaises(InvalidTransitionError):
            await crud.save_rental_order(replace(seeded, stage=workflow.RENTAL_ORDER))
        self.assertEqual((await crud.get_rental_order("R0001")).stage, workflow.QUOTATION)

    # ---------- Concurrent writers ----------

    async def _race(self, order_id, *statuses):
        results = await asyncio.gather(
            *(crud.update_order_status(order_id, s) for s in statuses),
            return_exceptions=True,
        )
        applied = [r for r in results if not isinstance(r, BaseException)]
        refused = [r for r in results if isinstance(r, BaseException)]
        return applied, refused

    async def test_overlapping_status_updates_apply_once(self):
        before = await crud.list_order_history("order_seed_3")
        applied, refused = await self._race("order_seed_3", "completed", "cancelled")

        self.assertEqual(len(applied), 1)
        self.assertEqual(len(refused), 1)
        self.assertIsInstance(refused[0], InvalidTransitionError)
        self.assertEqual((await crud.get_order("order_seed_3")).status, applied[0].status)
        self.assertEqual(len(await crud.list_order_history("order_seed_3")), len(before) + 1)

    async def test_overlapping_advance_applies_once(self):
        applied, refused = await self._race("order_seed_2", "confirmed", "confirmed")

        self.assertEqual([o.status for o in applied], ["confirmed"])
        self.assertIsInstance(refused[0], InvalidTransitionError)
        history = await crud.list_order_history("order_seed_2")
        self.assertEqual([e.action for e in history], ["Order created", "Status updated"])

    # ---------- Vendor products ----------

    async def test_update_product(self):
        chair = await crud.update_product(
            2001, name=" Folding Wheelchair ", daily_rate=65.0, replacement_value=9500
        )
        self.assertEqual(chair.name, "Folding Wheelchair")
        self.assertEqual(chair.category, "Mobility")
        self.assertEqual(chair.unit_price, 65.0)
        self.assertEqual(chair.replacement_value, 9500)
        # weekly rule untouched
        self.assertEqual(chair.pricing_rules[1].base_price, 300)
        self.assertEqual(await crud.get_product(2001), chair)

        # the active daily rule changes, not the inactive hourly one
        concentrator = await crud.update_product(2004, daily_rate=175.0)
        self.assertEqual([r.base_price for r in concentrator.pricing_rules], [20, 175.0])

        # no daily rule yet, one is added
        projector = await crud.update_product(2006, daily_rate=250.0)
        self.assertEqual(projector.unit_price, 250.0)
        self.assertEqual([r.pricing_type for r in projector.pricing_rules], ["weekly", "daily"])

    async def test_update_product_rejected(self):
        with self.assertRaises(ValidationError):
            await crud.update_product(2001, name="   ")
        with self.assertRaises(ValidationError):
            await crud.update_product(2001, daily_rate=-1)
        with self.assertRaises(ProductNotFoundError):
            await crud.update_product(999999, name="Ghost")
        self.assertEqual((await crud.get_product(2001)).name, "Wheelchair")

    async def test_update_stock(self):
        tent = await crud.update_stock(2007, 4)
        self.assertEqual(tent.stock_count, 4)
        self.assertEqual((await crud.get_product(2007)).stock_count, 4)

        with self.assertRaises(ValidationError):
            await crud.update_stock(2007, -1)
        with self.assertRaises(ProductNotFoundError):
            await crud.update_stock(999999, 1)

    # ---------- Vendor dashboard ----------

    async def test_vendor_dashboard(self):
        summary = await crud.vendor_dashboard()
        self.assertEqual(summary.quotations, 1)
        self.assertEqual(summary.rentals, 0)
        self.assertEqual(summary.orders, 3)
        self.assertAlmostEqual(summary.revenue, 325 + 616 + 470)

        self.assertEqual(
            [(e.label, e.ordered, e.revenue) for e in summary.top_categories],
            [("Mobility", 2, 670.0), ("Home Care", 1, 560.0)],
        )
        self.assertEqual(
            [e.label for e in summary.top_products],
            ["Hospital Bed", "Walking Frame", "Wheelchair"],
        )
        self.assertEqual(
            [(e.label, e.revenue) for e in summary.top_customers],
            [("Jane Smith", 616), ("Mike Johnson", 470), ("John Doe", 325)],
        )

        # ties at the cut keep every tied entry
        top_one = await crud.vendor_dashboard(k=1)
        self.assertEqual([e.label for e in top_one.top_categories], ["Mobility"])
        self.assertEqual(len(top_one.top_products), 3)

        recent = await crud.vendor_dashboard(since=date(2024, 1, 13))
        self.assertEqual(recent.quotations, 0)
        self.assertEqual(recent.orders, 1)
        self.assertAlmostEqual(recent.revenue, 470)

    async def test_vendor_dashboard_follows_orders(self):
        order = workflow.new_rental_order("Acme Clinic")
        order = workflow.update_line(order, 1, quantity=3, unit_price=100.0, tax=18.0)
        for step in (lambda o: o, workflow.send, workflow.confirm):
            order = step(order)
            await crud.save_rental_order(order)
        await crud.update_order_status("order_seed_2", "cancelled")

        summary = await crud.vendor_dashboard()
        self.assertEqual(summary.rentals, 1)
        self.assertEqual(summary.quotations, 1)
        self.assertEqual(summary.orders, 2)
        self.assertAlmostEqual(summary.revenue, 325 + 470 + 354)
        self.assertNotIn("Jane Smith", [e.label for e in summary.top_customers])
        self.assertNotIn("Home Care", [e.label for e in summary.top_categories])


if __name__ == "__main__":
    unittest.main()
