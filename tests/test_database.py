import asyncio
import os
import sys
import tempfile
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from db.errors import CorruptStateError  # noqa: E402


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        db_database.DB_PATH = os.path.join(self.temp_dir.name, "nested", "test.sqlite")
        db_database._initialized = False
        db_database._init_lock = asyncio.Lock()
        db_database._write_lock = asyncio.Lock()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def _write_raw(self, key: str, raw: str) -> None:
        async with db_database.connect() as conn:
            await conn.execute(
                "INSERT OR REPLACE INTO kv_store(key, value, updated_at) VALUES (?, ?, '');",
                (key, raw),
            )
            await conn.commit()

    async def _state(self, key: str) -> db_database.StoredValue:
        async with db_database.connect() as conn:
            return await db_database.read_key(conn, key)

    async def test_first_connect_seeds_catalog(self):
        products = await crud.list_products()
        self.assertEqual(len(products), 8)
        self.assertEqual(products[0].name, "Floral Summer Dress")
        self.assertTrue(os.path.exists(db_database.DB_PATH))

    async def test_read_states(self):
        async with db_database.transaction() as conn:
            await db_database.write_key(conn, "k-ok", {"a": [1, 2]})

        ok = await self._state("k-ok")
        self.assertTrue(ok.ok)
        self.assertEqual(ok.unwrap(), {"a": [1, 2]})

        empty = await self._state("k-missing")
        self.assertEqual(empty.status, "empty")
        self.assertEqual(empty.unwrap([]), [])

        await self._write_raw("k-bad", "{not json")
        bad = await self._state("k-bad")
        self.assertEqual(bad.status, "corrupt")
        self.assertEqual(bad.raw, "{not json")
        with self.assertRaises(CorruptStateError) as ctx:
            bad.unwrap([])
        self.assertEqual(ctx.exception.key, "k-bad")

    async def test_transaction_rolls_back_on_error(self):
        with self.assertRaises(RuntimeError):
            async with db_database.transaction() as conn:
                await db_database.write_key(conn, "k-tmp", 1)
                raise RuntimeError("boom")
        self.assertEqual((await self._state("k-tmp")).status, "empty")

    async def test_keys_with_prefix_and_delete(self):
        async with db_database.transaction() as conn:
            for key in ("user-b@x.io", "user-a@x.io", "users-other"):
                await db_database.write_key(conn, key, {})
            await db_database.delete_key(conn, "user-b@x.io")

        async with db_database.connect() as conn:
            keys = await db_database.keys_with_prefix(conn, "user-")
        self.assertEqual(keys, ["user-a@x.io"])

    async def test_corrupt_catalog_is_not_overwritten(self):
        await self._write_raw(crud.PRODUCTS_KEY, "[{broken")

        with self.assertRaises(CorruptStateError):
            await crud.list_products()
        with self.assertRaises(CorruptStateError):
            await crud.register_stock("New Dress", 20.0, 1, "Dresses")

        self.assertEqual((await self._state(crud.PRODUCTS_KEY)).raw, "[{broken")

    async def test_corrupt_visit_counter_is_reported(self):
        await self._write_raw(crud.VISITS_KEY, "not-a-number")
        with self.assertRaises(CorruptStateError):
            await crud.record_catalog_visit()
        self.assertEqual((await self._state(crud.VISITS_KEY)).raw, "not-a-number")


if __name__ == "__main__":
    unittest.main()
