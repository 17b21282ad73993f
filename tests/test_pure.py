import unittest
from datetime import date, datetime

from db.models import Address, Order, OrderEvent, OrderItem, OrderLine, RentalOrder
from utils.pure import (
    format_money,
    generate_markdown_table,
    parse_date,
    render_order_markdown,
    render_rental_order_markdown,
)


class MarkdownTableTestCase(unittest.TestCase):
    def test_headers_and_alignment(self):
        md = generate_markdown_table(["A", "B"], [[1, "x"]], ["l", "r"])
        self.assertEqual(md.splitlines(), ["| A | B |", "| :--- | ---: |", "| 1 | x |"])

    def test_first_row_as_headers(self):
        md = generate_markdown_table(None, [["k", "v"], ["a", 1]])
        self.assertTrue(md.startswith("| k | v |"))

    def test_pipes_are_escaped(self):
        self.assertIn("a \\| b", generate_markdown_table(["x"], [["a | b"]]))

    def test_empty_and_bad_aligns(self):
        self.assertEqual(generate_markdown_table(["x"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["x", "y"], [[1, 2]], ["l"])


class FormattingTestCase(unittest.TestCase):
    def test_format_money(self):
        self.assertEqual(format_money(1234.5), "₹1,234.50")
        self.assertEqual(format_money(-40), "-₹40.00")

    def test_parse_date(self):
        self.assertEqual(parse_date(" 2024-01-15 "), date(2024, 1, 15))
        self.assertIsNone(parse_date(""))
        self.assertIsNone(parse_date("15/01/2024"))


class RenderTestCase(unittest.TestCase):
    def test_order_markdown(self):
        address = Address(full_name="John Doe", street="12 MG Road", city="Bengaluru")
        order = Order(
            id="order_1",
            order_number="ORD-1-ABCDE",
            cid=1001,
            customer_name="John Doe",
            customer_email="john@example.com",
            items=(OrderItem(2001, "Wheelchair", 2, 50.0, date(2024, 1, 1), date(2024, 1, 3)),),
            status="in-progress",
            delivery_method="home_delivery",
            payment_method="cod",
            billing_address=address,
            delivery_address=address,
            subtotal=200.0,
            tax_amount=20.0,
            delivery_charge=50.0,
            discount_amount=20.0,
            total_amount=250.0,
            applied_coupon="SAVE10",
            notes="Call first",
            created_at=datetime(2024, 1, 1, 9, 30),
        )
        history = [OrderEvent("order_1", datetime(2024, 1, 1, 9, 30), "Order created", "Items: 1")]
        md = render_order_markdown(order, history)

        self.assertIn("ORD-1-ABCDE", md)
        self.assertIn("In Progress", md)
        self.assertIn("₹200.00", md)
        self.assertIn("Discount (SAVE10)", md)
        self.assertIn("Call first", md)
        self.assertIn("Order created", md)

    def test_rental_order_markdown(self):
        order = RentalOrder(
            id="R1",
            order_lines=(OrderLine(1, 2001, "Wheelchair", 5, 200.0, 200.0, 18.0),),
            stage="rental-order",
            customer="John Doe",
            terms="Return clean",
        )
        md = render_rental_order_markdown(order, title="Confirmed")

        self.assertTrue(md.startswith("## Confirmed"))
        self.assertIn("Rental Order", md)
        self.assertIn("₹1,000.00", md)
        self.assertIn("₹1,180.00", md)
        self.assertIn("Return clean", md)


if __name__ == "__main__":
    unittest.main()
