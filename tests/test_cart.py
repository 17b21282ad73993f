import unittest
from datetime import date, datetime

from db.models import ProductRef, RentalDates
from rental import cart
from rental.cart import CartStore, WishlistStore
from rental.errors import MissingRentalDatesError, ValidationError

WHEELCHAIR = ProductRef(pid=2001, name="Wheelchair", unit_price=50.0)
BED = ProductRef(pid=2002, name="Hospital Bed", unit_price=80.0)
JAN = RentalDates(date(2024, 1, 1), date(2024, 1, 3))
FEB = RentalDates(date(2024, 2, 1), date(2024, 2, 3))


class CartFunctionsTestCase(unittest.TestCase):
    def test_line_item_id(self):
        self.assertEqual(cart.line_item_id(2001, JAN), "2001-2024-01-01-2024-01-03")

    def test_add_merges_same_product_and_period(self):
        items = cart.add_item((), WHEELCHAIR, 1, JAN)
        items = cart.add_item(items, WHEELCHAIR, 2, JAN)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].quantity, 3)

    def test_add_keeps_different_periods_apart(self):
        items = cart.add_item((), WHEELCHAIR, 1, JAN)
        items = cart.add_item(items, WHEELCHAIR, 1, FEB)
        self.assertEqual(len(items), 2)
        self.assertEqual(len({i.id for i in items}), 2)

    def test_add_requires_dates(self):
        with self.assertRaises(MissingRentalDatesError) as ctx:
            cart.add_item((), WHEELCHAIR, 1, None)
        self.assertEqual(str(ctx.exception), "Please select rental dates")

        with self.assertRaises(MissingRentalDatesError):
            cart.add_item((), WHEELCHAIR, 1, RentalDates(date(2024, 1, 1), None))

    def test_add_rejects_end_before_start(self):
        with self.assertRaises(ValidationError):
            cart.add_item((), WHEELCHAIR, 1, RentalDates(date(2024, 1, 3), date(2024, 1, 1)))

    def test_add_rejects_non_positive_quantity(self):
        with self.assertRaises(ValidationError):
            cart.add_item((), WHEELCHAIR, 0, JAN)

    def test_update_quantity(self):
        items = cart.add_item((), WHEELCHAIR, 1, JAN)
        items = cart.update_quantity(items, items[0].id, 5)
        self.assertEqual(items[0].quantity, 5)

    def test_update_quantity_to_zero_removes(self):
        items = cart.add_item((), WHEELCHAIR, 1, JAN)
        self.assertEqual(cart.update_quantity(items, items[0].id, 0), ())
        self.assertEqual(cart.update_quantity(items, items[0].id, -2), ())

    def test_unknown_id_is_noop(self):
        items = cart.add_item((), WHEELCHAIR, 1, JAN)
        self.assertEqual(cart.update_quantity(items, "missing", 4), items)
        self.assertEqual(cart.remove_item(items, "missing"), items)

    def test_input_is_not_modified(self):
        items = cart.add_item((), WHEELCHAIR, 1, JAN)
        cart.add_item(items, WHEELCHAIR, 1, JAN)
        self.assertEqual(items[0].quantity, 1)


class CartStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.seen = []
        self.store = CartStore(listener=self.seen.append)

    def test_every_mutation_notifies(self):
        self.store.add_item(WHEELCHAIR, 2, JAN)
        self.store.add_item(BED, 1, JAN)
        item_id = self.store.items[0].id
        self.store.update_quantity(item_id, 3)
        self.store.remove_item(item_id)
        self.store.clear()

        self.assertEqual(len(self.seen), 5)
        self.assertEqual(self.seen[-1], ())
        self.assertEqual(len(self.seen[1]), 2)

    def test_failed_add_does_not_notify(self):
        with self.assertRaises(MissingRentalDatesError):
            self.store.add_item(WHEELCHAIR, 1, RentalDates(None, None))
        self.assertEqual(self.seen, [])
        self.assertEqual(len(self.store), 0)

    def test_load_does_not_notify(self):
        items = cart.add_item((), WHEELCHAIR, 1, JAN)
        self.store.load(items)
        self.assertEqual(self.seen, [])
        self.assertEqual(self.store.items, items)

    def test_lookups_and_summary(self):
        self.store.add_item(WHEELCHAIR, 2, JAN)
        self.store.add_item(BED, 1, FEB)

        self.assertTrue(self.store.contains(2001, JAN))
        self.assertFalse(self.store.contains(2001, FEB))
        self.assertFalse(self.store.contains(2001, None))
        self.assertEqual(self.store.get_item(2002, FEB).quantity, 1)
        self.assertEqual(self.store.item_count(), 3)

        summary = self.store.summary()
        self.assertAlmostEqual(summary.subtotal, 50 * 2 * 2 + 80 * 1 * 2)
        self.assertAlmostEqual(summary.total, summary.subtotal * 1.1)


class WishlistStoreTestCase(unittest.TestCase):
    def test_add_once_per_product(self):
        seen = []
        wishlist = WishlistStore(listener=seen.append)
        when = datetime(2024, 1, 1, 9, 0)

        self.assertTrue(wishlist.add(WHEELCHAIR, when))
        self.assertFalse(wishlist.add(WHEELCHAIR))
        self.assertEqual(len(wishlist), 1)
        self.assertEqual(wishlist.entries[0].added_at, when)
        self.assertEqual(wishlist.entries[0].unit_price, 50.0)
        self.assertEqual(len(seen), 1)

    def test_remove_and_clear(self):
        wishlist = WishlistStore()
        wishlist.add(WHEELCHAIR)
        wishlist.add(BED)
        wishlist.remove(2001)
        self.assertFalse(wishlist.contains(2001))
        self.assertTrue(wishlist.contains(2002))
        wishlist.clear()
        self.assertEqual(len(wishlist), 0)


if __name__ == "__main__":
    unittest.main()
