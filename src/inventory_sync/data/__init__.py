"""Persistence layer.

SQLite database management and typed stores for currency sync state and
the inventory entities read by the agent scanner.
"""

from inventory_sync.data.database import InventoryDatabase
from inventory_sync.data.store import CurrencyStore, InventoryStore

__all__ = [
    "CurrencyStore",
    "InventoryDatabase",
    "InventoryStore",
]
