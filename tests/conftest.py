"""Shared test fixtures for the inventory sync service."""

import functools

import pytest
import pytest_asyncio

from inventory_sync.config import AgentSettings, AppSettings, CurrencySettings, ProviderSettings
from inventory_sync.data.database import InventoryDatabase
from inventory_sync.data.store import CurrencyStore, InventoryStore


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (dummy API key, fast intervals)."""
    return AppSettings(
        log_level="DEBUG",
        provider=ProviderSettings(
            base_url="https://provider.test/v1",
            api_key="test-api-key",  # type: ignore[arg-type]
            timeout_seconds=5.0,
        ),
        currency=CurrencySettings(
            base_currency="USD",
            codes=["USD", "EUR", "GBP"],
        ),
        agent=AgentSettings(cert_dir="certs", ca_file="ca.crt"),
    )


@pytest_asyncio.fixture
async def database(tmp_path):
    """Connected InventoryDatabase on a fresh file."""
    db = InventoryDatabase(str(tmp_path / "inventory.db"))
    await db.connect()
    try:
        yield db
    finally:
        await db.close()


@pytest_asyncio.fixture
async def currency_store(database: InventoryDatabase) -> CurrencyStore:
    return CurrencyStore(database)


@pytest_asyncio.fixture
async def inventory_store(database: InventoryDatabase) -> InventoryStore:
    return InventoryStore(database)


async def _seed_trading_system(
    database: InventoryDatabase,
    username: str = "alice",
    external_ref: str = "ES-Breakout",
    timezone: str = "utc",
    name: str = "ES Breakout",
) -> int:
    """Insert exchange -> broker product -> trading system; return the system id."""
    db = database.db
    cursor = await db.execute(
        "INSERT INTO exchange (code, name, timezone) VALUES (?, ?, ?)",
        ("CME", "Chicago Mercantile Exchange", timezone),
    )
    exchange_id = cursor.lastrowid
    cursor = await db.execute(
        "INSERT INTO broker_product (exchange_id, username, symbol) VALUES (?, ?, ?)",
        (exchange_id, username, "ES"),
    )
    product_id = cursor.lastrowid
    cursor = await db.execute(
        "INSERT INTO trading_system (username, broker_product_id, name, external_ref) "
        "VALUES (?, ?, ?, ?)",
        (username, product_id, name, external_ref),
    )
    await db.commit()
    return cursor.lastrowid


async def _seed_agent(
    database: InventoryDatabase,
    username: str = "alice",
    name: str = "agent-1",
    scan_interval: int = 1,
) -> int:
    cursor = await database.db.execute(
        "INSERT INTO agent_profile (username, name, remote_url, ssl_cert_ref, ssl_key_ref, "
        "scan_interval) VALUES (?, ?, ?, ?, ?, ?)",
        (username, name, f"https://{name}.test/trades", f"{name}.crt", f"{name}.key", scan_interval),
    )
    await database.db.commit()
    return cursor.lastrowid


@pytest.fixture
def seed_trading_system(database: InventoryDatabase):
    """Async helper: seed_trading_system(external_ref=..., timezone=...) -> id."""
    return functools.partial(_seed_trading_system, database)


@pytest.fixture
def seed_agent(database: InventoryDatabase):
    """Async helper: seed_agent(name=..., scan_interval=...) -> id."""
    return functools.partial(_seed_agent, database)
