import os
import sys
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.errors import StockError  # noqa: E402
from db.models import Product  # noqa: E402
from utils.cart import Cart  # noqa: E402


def make_product(pid="1", name="Silk Blouse", price=38.5, stock=3) -> Product:
    return Product(
        pid=pid, name=name, category="Women", price=price, stock_count=stock, descr=""
    )


class CartTestCase(unittest.TestCase):
    def test_add_creates_then_increments(self):
        cart = Cart()
        blouse = make_product()
        line = cart.add(blouse)
        self.assertEqual((line.pid, line.qty, line.price), ("1", 1, 38.5))
        cart.add(blouse)
        self.assertEqual(len(cart), 1)
        self.assertEqual(cart.qty_of("1"), 2)
        self.assertEqual(cart.total, 77.0)

    def test_add_refuses_beyond_stock(self):
        cart = Cart()
        prod = make_product(stock=1)
        cart.add(prod)
        with self.assertRaises(StockError):
            cart.add(prod)
        self.assertEqual(cart.qty_of("1"), 1)

        with self.assertRaises(StockError):
            cart.add(make_product(pid="2", name="Wool Scarf", stock=0))
        self.assertNotIn("2", cart)

    def test_set_qty_leaves_line_unchanged_on_error(self):
        cart = Cart()
        prod = make_product(stock=3)
        cart.add(prod)
        cart.set_qty(prod, 3)
        self.assertEqual(cart.qty_of("1"), 3)

        for bad in (0, 4):
            with self.assertRaises(StockError):
                cart.set_qty(prod, bad)
            self.assertEqual(cart.qty_of("1"), 3)

        with self.assertRaises(StockError):
            cart.set_qty(make_product(pid="9"), 1)

    def test_lines_keep_insertion_order_and_freeze(self):
        cart = Cart()
        cart.add(make_product(pid="2", name="B", price=5.0))
        cart.add(make_product(pid="1", name="A", price=2.5))
        cart.add(make_product(pid="1", name="A", price=2.5))
        self.assertEqual([line.pid for line in cart.lines], ["2", "1"])

        frozen = cart.freeze()
        self.assertEqual([(f.pid, f.qty, f.subtotal) for f in frozen], [("2", 1, 5.0), ("1", 2, 5.0)])

        cart.remove("2")
        cart.remove("missing")
        self.assertEqual(cart.qty_of("2"), 0)
        cart.clear()
        self.assertFalse(cart)
        self.assertEqual(cart.total, 0)


if __name__ == "__main__":
    unittest.main()
