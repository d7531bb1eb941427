"""Async SQLite database manager for inventory sync state.

Uses aiosqlite for non-blocking database operations with WAL mode
so the currency sync and the agent scan can run side by side.
"""

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Self

import aiosqlite

from inventory_sync.exceptions import PersistenceError
from inventory_sync.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

# currency / currency_history are owned by the currency sync engine.
# exchange, broker_product, trading_system and agent_profile are owned by the
# CRUD layer and only read here; they are created so a fresh database works.
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS currency (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT NOT NULL UNIQUE,
    first_date TEXT,
    last_date TEXT,
    last_value TEXT,
    history_ended INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS currency_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    currency_id INTEGER NOT NULL REFERENCES currency(id),
    date TEXT NOT NULL,
    value TEXT NOT NULL,
    UNIQUE (currency_id, date)
);

CREATE TABLE IF NOT EXISTS exchange (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    code TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    timezone TEXT NOT NULL DEFAULT 'utc'
);

CREATE TABLE IF NOT EXISTS broker_product (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    exchange_id INTEGER NOT NULL REFERENCES exchange(id),
    username TEXT NOT NULL,
    symbol TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS trading_system (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    broker_product_id INTEGER NOT NULL REFERENCES broker_product(id),
    name TEXT NOT NULL,
    external_ref TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS agent_profile (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    name TEXT NOT NULL,
    remote_url TEXT NOT NULL,
    ssl_cert_ref TEXT NOT NULL,
    ssl_key_ref TEXT NOT NULL,
    scan_interval INTEGER NOT NULL DEFAULT 1
);
"""

_CREATE_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_trading_system_ext_ref
    ON trading_system(username, external_ref);
"""


class InventoryDatabase:
    """Async SQLite connection manager.

    Usage:
        async with InventoryDatabase("/path/to/db") as database:
            async with database.transaction() as db:
                await db.execute("UPDATE ...")
    """

    def __init__(self, db_path: str = "data/inventory.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        # One shared connection: transactions must not interleave
        self._tx_lock = asyncio.Lock()

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open database connection, configure pragmas, and create schema."""
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA foreign_keys=ON")

        await self._create_tables()
        await self._ensure_schema_version()

        logger.info("inventory_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("inventory_db_closed", db_path=self._db_path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block of statements as one transaction.

        Commits when the block exits normally and rolls back on any
        exception. SQLite failures surface as PersistenceError.
        """
        db = self.db
        async with self._tx_lock:
            try:
                yield db
                await db.commit()
            except aiosqlite.Error as e:
                await db.rollback()
                raise PersistenceError(f"Database transaction failed: {e}") from e
            except BaseException:
                await db.rollback()
                raise

    async def _create_tables(self) -> None:
        assert self._connection is not None
        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.executescript(_CREATE_INDEXES_SQL)
        await self._connection.commit()

    async def _ensure_schema_version(self) -> None:
        """Insert schema version if not already set."""
        assert self._connection is not None
        cursor = await self._connection.execute(
            "SELECT version FROM schema_version LIMIT 1"
        )
        row = await cursor.fetchone()
        if row is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self._connection.commit()
            logger.info("schema_version_set", version=SCHEMA_VERSION)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
