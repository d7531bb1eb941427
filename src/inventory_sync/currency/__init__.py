"""Currency history synchronization -- provider client and incremental sync engine."""

from inventory_sync.currency.provider import CurrencyProviderClient, HistoricalRates
from inventory_sync.currency.sync import CurrencySyncEngine, SyncPhase, plan_sync_step

__all__ = [
    "CurrencyProviderClient",
    "CurrencySyncEngine",
    "HistoricalRates",
    "SyncPhase",
    "plan_sync_step",
]
