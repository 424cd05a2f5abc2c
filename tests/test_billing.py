import asyncio
import os
import sys
import tempfile
import unittest
from datetime import datetime

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.errors import NotFoundError, StockError, ValidationError  # noqa: E402
from utils.cart import Cart  # noqa: E402


class BillingTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the store to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        db_database.DB_PATH = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database._initialized = False
        db_database._init_lock = asyncio.Lock()
        db_database._write_lock = asyncio.Lock()

    async def asyncSetUp(self):
        self.prod, created = await crud.register_stock("Test Tee", 10.0, 5, "Deals")
        self.assertTrue(created)

    def tearDown(self):
        self.temp_dir.cleanup()

    async def _stock(self, pid: str) -> int:
        return (await crud.get_product(pid)).stock_count

    # ---------- Cart ----------

    async def test_add_to_cart_increments_up_to_stock(self):
        cart = Cart()
        for _ in range(5):
            await crud.add_to_cart(cart, self.prod.pid)
        self.assertEqual(cart.qty_of(self.prod.pid), 5)

        with self.assertRaises(StockError):
            await crud.add_to_cart(cart, self.prod.pid)
        self.assertEqual(cart.qty_of(self.prod.pid), 5)

        # nothing is reserved by the cart
        self.assertEqual(await self._stock(self.prod.pid), 5)

    async def test_add_unknown_or_sold_out_product(self):
        cart = Cart()
        with self.assertRaises(NotFoundError):
            await crud.add_to_cart(cart, "no-such-pid")

        # Wool Scarf is seeded with no stock
        with self.assertRaises(StockError):
            await crud.add_to_cart(cart, "8")
        self.assertFalse(cart)

    async def test_set_cart_qty_bounds(self):
        cart = Cart()
        await crud.add_to_cart(cart, self.prod.pid)

        await crud.set_cart_qty(cart, self.prod.pid, 4)
        self.assertEqual(cart.qty_of(self.prod.pid), 4)

        for bad in (0, -1, 6):
            with self.assertRaises(StockError):
                await crud.set_cart_qty(cart, self.prod.pid, bad)
            self.assertEqual(cart.qty_of(self.prod.pid), 4)

    # ---------- Checkout ----------

    async def test_checkout_and_void_round_trip(self):
        cart = Cart()
        for _ in range(3):
            await crud.add_to_cart(cart, self.prod.pid)

        when = datetime(2025, 3, 1, 12, 0, 0)
        invoice = await crud.checkout(cart, "Cash", when=when)

        self.assertEqual(invoice.total, 30.0)
        self.assertEqual(invoice.status, "Paid")
        self.assertEqual(invoice.customer_name, "General Customer")
        self.assertEqual(invoice.ino, f"INV-{int(when.timestamp() * 1000)}")
        self.assertEqual(invoice.units, 3)
        self.assertEqual(await self._stock(self.prod.pid), 2)
        self.assertFalse(cart)

        voided = await crud.void_invoice(invoice.ino)
        self.assertEqual(voided.status, "Void")
        self.assertEqual(await self._stock(self.prod.pid), 5)
        self.assertEqual((await crud.get_invoice(invoice.ino)).status, "Void")

        # voiding twice must not restore stock twice
        with self.assertRaises(ValidationError):
            await crud.void_invoice(invoice.ino)
        self.assertEqual(await self._stock(self.prod.pid), 5)

        with self.assertRaises(NotFoundError):
            await crud.void_invoice("INV-0")

    async def test_checkout_rejects_empty_cart_and_missing_payment(self):
        with self.assertRaises(ValidationError):
            await crud.checkout(Cart(), "Cash")

        cart = Cart()
        await crud.add_to_cart(cart, self.prod.pid)
        with self.assertRaises(ValidationError):
            await crud.checkout(cart, None)
        with self.assertRaises(ValidationError):
            await crud.checkout(cart, "Bitcoin")

        # rejected checkouts leave the cart and the store alone
        self.assertEqual(cart.qty_of(self.prod.pid), 1)
        self.assertEqual(await crud.list_invoices(), [])
        self.assertEqual(await self._stock(self.prod.pid), 5)

    async def test_checkout_rechecks_stock_at_commit(self):
        cart = Cart()
        for _ in range(4):
            await crud.add_to_cart(cart, self.prod.pid)

        # another desk sells 3 units in the meantime
        other = Cart()
        for _ in range(3):
            await crud.add_to_cart(other, self.prod.pid)
        await crud.checkout(other, "Transfer", "Ana")

        with self.assertRaises(StockError):
            await crud.checkout(cart, "Cash")
        self.assertEqual(await self._stock(self.prod.pid), 2)
        self.assertEqual(cart.qty_of(self.prod.pid), 4)
        self.assertEqual(len(await crud.list_invoices()), 1)

    async def test_concurrent_checkouts_never_oversell(self):
        carts = [Cart(), Cart()]
        for cart in carts:
            for _ in range(3):
                await crud.add_to_cart(cart, self.prod.pid)

        results = await asyncio.gather(
            *(crud.checkout(cart, "Cash") for cart in carts), return_exceptions=True
        )
        failures = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], StockError)
        self.assertEqual(await self._stock(self.prod.pid), 2)
        self.assertEqual(len(await crud.list_invoices()), 1)

    async def test_invoice_ids_unique_and_newest_first(self):
        when = datetime(2025, 3, 1, 9, 30)
        inos = []
        for name in ("Ana", "Bea"):
            cart = Cart()
            await crud.add_to_cart(cart, self.prod.pid)
            inos.append((await crud.checkout(cart, "Cash", name, when=when)).ino)

        self.assertNotEqual(inos[0], inos[1])
        ledger = await crud.list_invoices()
        self.assertEqual([inv.ino for inv in ledger], list(reversed(inos)))
        self.assertEqual(ledger[0].customer_name, "Bea")

    async def test_invoice_keeps_price_from_cart(self):
        cart = Cart()
        await crud.add_to_cart(cart, self.prod.pid)
        # restocking at a new price after the line entered the cart
        await crud.register_stock("test tee", 12.0, 1, "Deals")
        invoice = await crud.checkout(cart, "Cash")
        self.assertEqual(invoice.lines[0].price, 10.0)
        self.assertEqual(invoice.total, 10.0)

    async def test_convert_total(self):
        self.assertEqual(crud.convert_total(30.0, 4000), 120000.0)
        self.assertIsNone(crud.convert_total(30.0, 0))
        self.assertIsNone(crud.convert_total(30.0, -2))


if __name__ == "__main__":
    unittest.main()
