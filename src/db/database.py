# manages connection to the key-value store, provides helper methods internal to db package
import asyncio
import json
import os.path
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from sqlite3 import Row
from typing import Any, AsyncIterator, List, Literal, Optional

import aiosqlite

from db.errors import CorruptStateError
from utils.logger import get_logger

_logger = get_logger(__name__)

DB_PATH = os.getenv("CLICKSHOP_DB", "data/db.sqlite")
_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
DB_INIT_SCRIPTS = [
    os.path.join(_SCRIPT_DIR, "prj-tables.sql"),
    os.path.join(_SCRIPT_DIR, "dummy-data.sql"),
]

_initialized = False
_init_lock = asyncio.Lock()
# single writer for every read-modify-write on the store
_write_lock = asyncio.Lock()


@dataclass(frozen=True)
class StoredValue:
    """Result of reading one key: a parsed value, nothing, or unparsable text."""

    key: str
    status: Literal["ok", "empty", "corrupt"]
    value: Any = None
    raw: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def unwrap(self, default: Any = None) -> Any:
        """Return the parsed value, `default` when empty; raise when corrupt."""
        if self.status == "corrupt":
            raise CorruptStateError(self.key)
        if self.status == "empty":
            return default
        return self.value


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing store with script {os.path.basename(script)}...")
        with open(script, "r", encoding="utf-8") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def connect() -> AsyncIterator[aiosqlite.Connection]:
    """Async context manager yielding an aiosqlite connection.

    Ensures the store is initialized (table and seed catalog) on first use.
    """
    global _initialized
    parent = os.path.dirname(DB_PATH)
    if parent and not os.path.isdir(parent):
        os.makedirs(parent, exist_ok=True)
    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                exists = await _table_exists(conn, "kv_store")
                if not exists:
                    _logger.info("Initializing store...")
                    await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Serialized read-modify-write on the store.

    Holds the process-wide write lock and an immediate SQLite transaction, so no
    other writer (in this process or another one sharing the file) can interleave.
    Commits on success, rolls back on any exception.
    """
    async with _write_lock:
        async with connect() as conn:
            await conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            await conn.commit()


async def read_key(conn: aiosqlite.Connection, key: str) -> StoredValue:
    cur = await conn.execute("SELECT value FROM kv_store WHERE key = ?;", (key,))
    row = await cur.fetchone()
    await cur.close()
    if row is None or row[0] is None or row[0] == "":
        return StoredValue(key, "empty")
    try:
        return StoredValue(key, "ok", json.loads(row[0]), row[0])
    except json.JSONDecodeError:
        _logger.warning(f"Stored value for '{key}' is not valid JSON: {row[0][:80]!r}")
        return StoredValue(key, "corrupt", None, row[0])


async def write_key(conn: aiosqlite.Connection, key: str, value: Any) -> None:
    """Overwrite `key` wholesale. Caller commits (see transaction())."""
    await conn.execute(
        """
        INSERT INTO kv_store(key, value, updated_at) VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at;
        """,
        (key, json.dumps(value), datetime.now().isoformat()),
    )


async def delete_key(conn: aiosqlite.Connection, key: str) -> None:
    await conn.execute("DELETE FROM kv_store WHERE key = ?;", (key,))


async def keys_with_prefix(conn: aiosqlite.Connection, prefix: str) -> List[str]:
    cur = await conn.execute(
        "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key;",
        (len(prefix), prefix),
    )
    rows = await cur.fetchall()
    await cur.close()
    return [row[0] for row in rows]
