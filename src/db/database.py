# manages connection to db, provides helper methods internal to db package
import asyncio
import os.path
from contextlib import asynccontextmanager
from sqlite3 import Row
from typing import AsyncIterator

import aiosqlite

from utils.config import load_settings
from utils.logger import get_logger

_logger = get_logger(__name__)

_HERE = os.path.dirname(os.path.abspath(__file__))

DB_PATH = load_settings().db_path
DB_INIT_SCRIPTS = [
    os.path.join(_HERE, "schema.sql"),
    os.path.join(_HERE, "demo-data.sql"),
]

_initialized = False
_init_lock = asyncio.Lock()


def use_database(path: str) -> None:
    """Point connect() at another sqlite file, created and seeded on next use."""
    global DB_PATH, _initialized, _init_lock
    DB_PATH = path
    _initialized = False
    _init_lock = asyncio.Lock()


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Running {os.path.basename(script)}...")
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
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Creates the tables and demo accounts on first use.
    """
    global _initialized
    directory = os.path.dirname(DB_PATH)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                if not await _table_exists(conn, "customers"):
                    _logger.info(f"Initializing database at {DB_PATH}...")
                    await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """connect() inside BEGIN IMMEDIATE.

    The write lock is taken up front, so a read-check-write done on this
    connection cannot interleave with another writer. Commits when the
    block exits normally, rolls back when it raises.
    """
    async with connect() as conn:
        await conn.execute("BEGIN IMMEDIATE;")
        try:
            yield conn
        except Exception:
            await conn.rollback()
            raise
        await conn.commit()
