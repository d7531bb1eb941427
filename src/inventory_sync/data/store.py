"""Typed SQLite read/write abstraction for sync state and inventory lookups.

CurrencyStore owns the currency and currency_history tables. InventoryStore
reads the CRUD-owned tables the agent scanner needs. All SQL is isolated
behind these two classes.

CRITICAL: Rates are stored as TEXT in SQLite and restored as Decimal on read.
Dates are stored as ISO ``YYYY-MM-DD`` TEXT.
"""

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

import aiosqlite

from inventory_sync.data.database import InventoryDatabase
from inventory_sync.exceptions import PersistenceError
from inventory_sync.logging import get_logger
from inventory_sync.models import (
    AgentProfile,
    Currency,
    CurrencyHistoryEntry,
    TradingSystemRef,
)

logger = get_logger(__name__)


def _to_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _from_date(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


async def _fetchall(database: InventoryDatabase, sql: str, params: Sequence = ()) -> list:
    try:
        cursor = await database.db.execute(sql, params)
        return list(await cursor.fetchall())
    except aiosqlite.Error as e:
        raise PersistenceError(f"Database read failed: {e}") from e


class CurrencyStore:
    """Async SQLite store for currency range state and rate history.

    Usage:
        async with InventoryDatabase("data/inventory.db") as database:
            store = CurrencyStore(database)
            currencies = await store.get_currencies()
    """

    def __init__(self, database: InventoryDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def ensure_currencies(self, codes: Iterable[str]) -> int:
        """Create rows for codes not yet known. Existing rows are untouched.

        Returns the number of rows created.
        """
        data = [(code.upper(),) for code in codes]
        if not data:
            return 0

        async with self._database.transaction() as db:
            cursor = await db.executemany(
                "INSERT OR IGNORE INTO currency (code) VALUES (?)", data
            )
            created = cursor.rowcount

        if created:
            logger.info("currencies_created", count=created)
        return created

    async def save_sync_step(
        self,
        currencies: list[Currency],
        history: list[CurrencyHistoryEntry],
    ) -> int:
        """Persist updated currency state and new history rows in one transaction.

        History rows are upserted on (currency_id, date) so a retried tick
        never duplicates a day. Returns the number of history rows written.
        """
        async with self._database.transaction() as db:
            await db.executemany(
                "UPDATE currency SET first_date = ?, last_date = ?, "
                "last_value = ?, history_ended = ? WHERE id = ?",
                [
                    (
                        _from_date(cur.first_date),
                        _from_date(cur.last_date),
                        str(cur.last_value) if cur.last_value is not None else None,
                        1 if cur.history_ended else 0,
                        cur.id,
                    )
                    for cur in currencies
                ],
            )
            if history:
                await db.executemany(
                    "INSERT INTO currency_history (currency_id, date, value) "
                    "VALUES (?, ?, ?) "
                    "ON CONFLICT (currency_id, date) DO UPDATE SET value = excluded.value",
                    [
                        (entry.currency_id, entry.day.isoformat(), str(entry.value))
                        for entry in history
                    ],
                )

        logger.debug(
            "currency_sync_step_saved",
            currencies=len(currencies),
            history_rows=len(history),
        )
        return len(history)

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_currencies(self) -> list[Currency]:
        """All currencies ordered by id."""
        rows = await _fetchall(
            self._database,
            "SELECT id, code, first_date, last_date, last_value, history_ended "
            "FROM currency ORDER BY id ASC",
        )
        return [
            Currency(
                id=row[0],
                code=row[1],
                first_date=_to_date(row[2]),
                last_date=_to_date(row[3]),
                last_value=Decimal(row[4]) if row[4] is not None else None,
                history_ended=bool(row[5]),
            )
            for row in rows
        ]

    async def get_history(
        self,
        code: str,
        since: date | None = None,
        until: date | None = None,
    ) -> list[CurrencyHistoryEntry]:
        """History rows of one currency, ordered by date ASC."""
        conditions = ["c.code = ?"]
        params: list = [code.upper()]

        if since is not None:
            conditions.append("h.date >= ?")
            params.append(since.isoformat())
        if until is not None:
            conditions.append("h.date <= ?")
            params.append(until.isoformat())

        where = " AND ".join(conditions)
        rows = await _fetchall(
            self._database,
            f"SELECT h.currency_id, h.date, h.value FROM currency_history h "
            f"JOIN currency c ON c.id = h.currency_id WHERE {where} "
            f"ORDER BY h.date ASC",
            params,
        )
        return [
            CurrencyHistoryEntry(
                currency_id=row[0],
                day=date.fromisoformat(row[1]),
                value=Decimal(row[2]),
            )
            for row in rows
        ]


class InventoryStore:
    """Read-only access to agent profiles and trading system context."""

    def __init__(self, database: InventoryDatabase) -> None:
        self._database = database

    async def get_agent_profiles(self) -> list[AgentProfile]:
        rows = await _fetchall(
            self._database,
            "SELECT id, username, name, remote_url, ssl_cert_ref, ssl_key_ref, "
            "scan_interval FROM agent_profile ORDER BY id ASC",
        )
        return [
            AgentProfile(
                id=row[0],
                username=row[1],
                name=row[2],
                remote_url=row[3],
                ssl_cert_ref=row[4],
                ssl_key_ref=row[5],
                scan_interval=row[6],
            )
            for row in rows
        ]

    async def get_trading_system_by_ext_ref(
        self, username: str, external_ref: str
    ) -> TradingSystemRef | None:
        """Find the owner's trading system bound to a remote system name."""
        rows = await _fetchall(
            self._database,
            "SELECT id, username, name, external_ref, broker_product_id "
            "FROM trading_system WHERE username = ? AND external_ref = ? LIMIT 1",
            (username, external_ref),
        )
        if not rows:
            return None
        row = rows[0]
        return TradingSystemRef(
            id=row[0],
            username=row[1],
            name=row[2],
            external_ref=row[3],
            broker_product_id=row[4],
        )

    async def get_trading_system_timezone(self, trading_system: TradingSystemRef) -> str | None:
        """Timezone name of the exchange behind a trading system's broker product.

        Returns None when the broker product or exchange is missing.
        """
        rows = await _fetchall(
            self._database,
            "SELECT e.timezone FROM broker_product bp "
            "JOIN exchange e ON e.id = bp.exchange_id WHERE bp.id = ?",
            (trading_system.broker_product_id,),
        )
        return rows[0][0] if rows else None
