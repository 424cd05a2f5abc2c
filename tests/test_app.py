import asyncio
import os
import sys
import tempfile
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import crud  # noqa: E402
from db import database as db_database  # noqa: E402
from main import ClickShopApp  # noqa: E402
from views.scr_catalog import CatalogScreen  # noqa: E402
from views.scr_login import LoginScreen  # noqa: E402


class AppStartupTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        db_database.DB_PATH = os.path.join(self.temp_dir.name, "test.sqlite")
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

    async def _raw(self, key: str):
        async with db_database.connect() as conn:
            return (await db_database.read_key(conn, key)).raw

    async def _wait_for_screen(self, app, pilot, screen_type) -> None:
        for _ in range(100):
            if isinstance(app.screen, screen_type):
                return
            await pilot.pause(0.05)
        self.fail(f"{screen_type.__name__} never showed, got {type(app.screen).__name__}")

    async def test_unreadable_session_starts_at_login(self):
        await self._write_raw(crud.SESSION_KEY, "{broken")

        app = ClickShopApp()
        async with app.run_test() as pilot:
            await self._wait_for_screen(app, pilot, LoginScreen)
            self.assertTrue(app.is_running)
            self.assertIsNone(app.state.user)

        self.assertIsNone(await self._raw(crud.SESSION_KEY))

    async def test_blocked_session_starts_at_login(self):
        await crud.register_user("Ana Perez", "ana@example.com", "secret1")
        await crud.set_user_status("ana@example.com", "blocked")

        app = ClickShopApp()
        async with app.run_test() as pilot:
            await self._wait_for_screen(app, pilot, LoginScreen)
            self.assertIsNone(app.state.user)

        self.assertIsNone(await crud.current_user())

    async def test_unreadable_catalog_keeps_app_running(self):
        await crud.register_user("Ana Perez", "ana@example.com", "secret1")
        await self._write_raw(crud.PRODUCTS_KEY, "[{broken")

        app = ClickShopApp()
        async with app.run_test() as pilot:
            await self._wait_for_screen(app, pilot, CatalogScreen)
            await pilot.pause(0.2)
            self.assertTrue(app.is_running)
            self.assertIsInstance(app.screen, CatalogScreen)

        self.assertEqual(await self._raw(crud.PRODUCTS_KEY), "[{broken")


if __name__ == "__main__":
    unittest.main()
