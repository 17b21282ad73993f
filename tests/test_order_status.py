import unittest
from datetime import date, datetime

from db.models import Address, Order, OrderItem
from rental import order_status as os_
from rental.errors import InvalidTransitionError


def make_order(status=os_.PENDING, number="ORD-1", customer="John Doe", product="Wheelchair"):
    return Order(
        id=f"order_{number}",
        order_number=number,
        cid=1001,
        customer_name=customer,
        customer_email="john@example.com",
        items=(OrderItem(2001, product, 1, 50.0, date(2024, 1, 1), date(2024, 1, 2)),),
        status=status,
        delivery_method="pickup",
        payment_method="cod",
        billing_address=Address(),
        delivery_address=Address(),
        subtotal=50.0,
        tax_amount=5.0,
        delivery_charge=0.0,
        discount_amount=0.0,
        total_amount=55.0,
        applied_coupon=None,
        notes="",
        created_at=datetime(2024, 1, 1, 10, 0),
    )


class StrictTransitionTestCase(unittest.TestCase):
    def test_next_status(self):
        self.assertEqual(os_.next_status(os_.PENDING), os_.CONFIRMED)
        self.assertEqual(os_.next_status(os_.CONFIRMED), os_.IN_PROGRESS)
        self.assertEqual(os_.next_status(os_.IN_PROGRESS), os_.COMPLETED)
        self.assertIsNone(os_.next_status(os_.COMPLETED))
        self.assertIsNone(os_.next_status(os_.CANCELLED))

    def test_in_progress_to_completed(self):
        order = os_.change_status(make_order(os_.IN_PROGRESS), os_.COMPLETED)
        self.assertEqual(order.status, os_.COMPLETED)

    def test_no_going_back(self):
        with self.assertRaises(InvalidTransitionError) as ctx:
            os_.change_status(make_order(os_.IN_PROGRESS), os_.PENDING)
        self.assertEqual(ctx.exception.current, os_.IN_PROGRESS)
        self.assertEqual(ctx.exception.requested, os_.PENDING)
        self.assertIn("ORD-1", str(ctx.exception))

    def test_no_skipping(self):
        with self.assertRaises(InvalidTransitionError):
            os_.change_status(make_order(os_.PENDING), os_.COMPLETED)

    def test_cancel_from_any_open_status(self):
        for status in (os_.PENDING, os_.CONFIRMED, os_.IN_PROGRESS):
            self.assertEqual(
                os_.change_status(make_order(status), os_.CANCELLED).status, os_.CANCELLED
            )

    def test_terminal_statuses(self):
        for status in os_.TERMINAL_STATUSES:
            self.assertTrue(os_.is_terminal(status))
            self.assertEqual(os_.allowed_transitions(status), set())
            self.assertEqual(os_.allowed_transitions(status, strict=False), set())
            with self.assertRaises(InvalidTransitionError):
                os_.change_status(make_order(status), os_.PENDING, strict=False)

    def test_unknown_status(self):
        self.assertFalse(os_.can_transition(os_.PENDING, "shipped"))
        self.assertEqual(os_.allowed_transitions("shipped"), set())


class LenientTransitionTestCase(unittest.TestCase):
    def test_any_jump_from_open_status(self):
        order = os_.change_status(make_order(os_.PENDING), os_.COMPLETED, strict=False)
        self.assertEqual(order.status, os_.COMPLETED)

        order = os_.change_status(make_order(os_.IN_PROGRESS), os_.PENDING, strict=False)
        self.assertEqual(order.status, os_.PENDING)

    def test_same_status_is_not_a_transition(self):
        self.assertFalse(os_.can_transition(os_.CONFIRMED, os_.CONFIRMED, strict=False))


class FilterOrdersTestCase(unittest.TestCase):
    def setUp(self):
        self.orders = [
            make_order(os_.PENDING, "ORD-100", "John Doe", "Wheelchair"),
            make_order(os_.CONFIRMED, "ORD-200", "Jane Smith", "Hospital Bed"),
            make_order(os_.PENDING, "ORD-300", "Mike Johnson", "Walking Frame"),
        ]

    def test_all(self):
        self.assertEqual(len(os_.filter_orders(self.orders)), 3)

    def test_by_status(self):
        found = os_.filter_orders(self.orders, status=os_.PENDING)
        self.assertEqual([o.order_number for o in found], ["ORD-100", "ORD-300"])

    def test_search_number_customer_product(self):
        self.assertEqual(len(os_.filter_orders(self.orders, "ord-2")), 1)
        self.assertEqual(len(os_.filter_orders(self.orders, "  jane ")), 1)
        self.assertEqual(len(os_.filter_orders(self.orders, "BED")), 1)
        self.assertEqual(os_.filter_orders(self.orders, "tent"), [])

    def test_search_and_status_combined(self):
        self.assertEqual(os_.filter_orders(self.orders, "jane", os_.PENDING), [])


if __name__ == "__main__":
    unittest.main()
