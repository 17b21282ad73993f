import unittest
from datetime import date

from db.models import Address, CheckoutDetails, ProductRef, RentalDates
from rental import cart
from rental.checkout import build_order_request, resolve_delivery_address, validate_checkout
from rental.errors import CheckoutValidationError
from rental.pricing import PICKUP

BILLING = Address(
    full_name="John Doe",
    email="john@example.com",
    phone="+91 98450 11001",
    street="12 MG Road",
    city="Bengaluru",
    state="KA",
    postal_code="560001",
)
ITEMS = cart.add_item(
    (),
    ProductRef(pid=2001, name="Wheelchair", unit_price=50.0),
    2,
    RentalDates(date(2024, 1, 15), date(2024, 1, 20)),
)


class ValidateCheckoutTestCase(unittest.TestCase):
    def test_complete_form_passes(self):
        validate_checkout(ITEMS, CheckoutDetails(billing_address=BILLING))

    def test_empty_cart_always_rejected(self):
        for strict in (True, False):
            with self.assertRaises(CheckoutValidationError) as ctx:
                validate_checkout((), CheckoutDetails(billing_address=BILLING), strict=strict)
            self.assertEqual(ctx.exception.fields, ["cart items"])

    def test_lists_every_missing_field(self):
        details = CheckoutDetails(billing_address=Address(full_name="John Doe"))
        with self.assertRaises(CheckoutValidationError) as ctx:
            validate_checkout(ITEMS, details)
        fields = ctx.exception.fields
        for name in ("billing email", "billing phone", "billing street", "billing city"):
            self.assertIn(name, fields)
        self.assertNotIn("billing full name", fields)
        self.assertTrue(str(ctx.exception).startswith("Please complete: "))

    def test_pickup_needs_no_delivery_address(self):
        details = CheckoutDetails(
            billing_address=Address(
                full_name="Jane", email="j@example.com", phone="1",
                street="4 Park Street", city="Kolkata", postal_code="700016",
            ),
            delivery_method=PICKUP,
        )
        validate_checkout(ITEMS, details)

    def test_unknown_methods(self):
        details = CheckoutDetails(
            billing_address=BILLING, delivery_method="drone", payment_method="barter"
        )
        with self.assertRaises(CheckoutValidationError) as ctx:
            validate_checkout(ITEMS, details)
        self.assertEqual(ctx.exception.fields, ["delivery method", "payment method"])

    def test_lenient_mode_accepts_blank_form(self):
        validate_checkout(ITEMS, CheckoutDetails(), strict=False)


class OrderRequestTestCase(unittest.TestCase):
    def test_delivery_falls_back_to_billing(self):
        details = CheckoutDetails(billing_address=BILLING)
        self.assertEqual(resolve_delivery_address(details), BILLING)

        elsewhere = Address(full_name="Office", street="1 Residency Road", city="Bengaluru")
        details = CheckoutDetails(billing_address=BILLING, delivery_address=elsewhere)
        self.assertEqual(resolve_delivery_address(details), elsewhere)

    def test_build_order_request(self):
        details = CheckoutDetails(
            billing_address=BILLING, payment_method="upi", notes="Ring twice"
        )
        request = build_order_request(ITEMS, details, "save10")

        self.assertEqual(len(request.items), 1)
        item = request.items[0]
        self.assertEqual((item.pid, item.quantity, item.unit_price), (2001, 2, 50.0))
        self.assertEqual(item.rental_start, date(2024, 1, 15))

        # 50 x 2 units x 5 days
        self.assertAlmostEqual(request.subtotal, 500)
        self.assertAlmostEqual(request.tax_amount, 50)
        self.assertAlmostEqual(request.delivery_charge, 50)
        self.assertAlmostEqual(request.discount_amount, 50)
        self.assertAlmostEqual(request.total_amount, 550)
        self.assertEqual(request.applied_coupon, "SAVE10")
        self.assertEqual(request.delivery_address, BILLING)
        self.assertEqual(request.payment_method, "upi")
        self.assertEqual(request.notes, "Ring twice")


if __name__ == "__main__":
    unittest.main()
