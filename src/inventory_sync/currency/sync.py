"""Incremental currency history synchronization.

The whole currency set moves as one batch: every tick picks a single target
date, makes one provider call for all non-base codes, and commits the new
range pointers plus history rows in one transaction.

State machine, evaluated once per tick on the batch driver (the base
currency row, or the first currency if the base is not stored):

    SEED      last_date unset                  -> target = yesterday (UTC)
    CATCHUP   last_date + 1 day < today (UTC)  -> target = last_date + 1
    BACKFILL  caught up, history not ended     -> target = first_date - 1
    IDLE      otherwise                        -> no-op

A provider failure raises before anything is written, so the same step is
retried on the next tick.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from inventory_sync.currency.provider import CurrencyProviderClient
from inventory_sync.data.store import CurrencyStore
from inventory_sync.logging import get_logger
from inventory_sync.models import EPOCH_DATE, Currency, CurrencyHistoryEntry

logger = get_logger(__name__)

_ONE_DAY = timedelta(days=1)


class SyncPhase(str, Enum):
    SEED = "seed"
    CATCHUP = "catchup"
    BACKFILL = "backfill"
    IDLE = "idle"


@dataclass(frozen=True)
class SyncStep:
    phase: SyncPhase
    target: date | None = None


@dataclass
class CurrencySyncResult:
    """Outcome of one currency sync tick."""

    phase: SyncPhase
    target: date | None = None
    history_rows: int = 0
    missing_codes: list[str] = field(default_factory=list)
    history_ended: bool = False


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def plan_sync_step(driver: Currency, today: date) -> SyncStep:
    """Pick the single step to run this tick (SEED > CATCHUP > BACKFILL > IDLE)."""
    if driver.last_date is None:
        return SyncStep(SyncPhase.SEED, today - _ONE_DAY)

    if driver.last_date + _ONE_DAY < today:
        return SyncStep(SyncPhase.CATCHUP, driver.last_date + _ONE_DAY)

    first_date = driver.first_date or driver.last_date
    if not driver.history_ended and first_date > EPOCH_DATE:
        return SyncStep(SyncPhase.BACKFILL, first_date - _ONE_DAY)

    return SyncStep(SyncPhase.IDLE)


def apply_sync_step(
    currencies: list[Currency],
    step: SyncStep,
    rates: dict,
) -> tuple[list[CurrencyHistoryEntry], list[str]]:
    """Move every currency's range to the step target and build history rows.

    Range pointers advance for the whole batch. A code missing from
    ``rates`` only loses its history row (and, on forward steps, its
    last_value update) for this date. Returns (history, missing codes).
    Mutates ``currencies`` in place.
    """
    assert step.target is not None
    target = step.target
    history: list[CurrencyHistoryEntry] = []
    missing: list[str] = []

    for cur in currencies:
        if step.phase is SyncPhase.BACKFILL:
            if cur.last_date is None:
                cur.last_date = cur.first_date or target
            cur.first_date = target
            cur.history_ended = target == EPOCH_DATE
        else:
            if cur.first_date is None:
                cur.first_date = target
            cur.last_date = target

        value = rates.get(cur.code)
        if value is None:
            missing.append(cur.code)
            continue

        if step.phase is not SyncPhase.BACKFILL:
            cur.last_value = value
        history.append(CurrencyHistoryEntry(currency_id=cur.id, day=target, value=value))

    return history, missing


class CurrencySyncEngine:
    """Runs one incremental sync step per tick.

    Args:
        store: Currency persistence.
        provider: Connected provider client.
        base_currency: Pivot currency; excluded from the request and from history.
        today: Clock returning the current UTC date (injectable for tests).
    """

    def __init__(
        self,
        store: CurrencyStore,
        provider: CurrencyProviderClient,
        base_currency: str = "USD",
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._store = store
        self._provider = provider
        self._base_currency = base_currency.upper()
        self._today = today

    async def tick(self) -> CurrencySyncResult:
        """Run one sync step. ProviderError / PersistenceError propagate."""
        currencies = await self._store.get_currencies()
        if not currencies:
            logger.info("no_currencies_configured")
            return CurrencySyncResult(phase=SyncPhase.IDLE)

        codes = [cur.code for cur in currencies if cur.code != self._base_currency]
        if not codes:
            logger.info("only_base_currency_configured", base=self._base_currency)
            return CurrencySyncResult(phase=SyncPhase.IDLE)

        driver = self._driver(currencies)
        step = plan_sync_step(driver, self._today())
        if step.phase is SyncPhase.IDLE:
            logger.debug("currency_sync_idle", last_date=str(driver.last_date))
            return CurrencySyncResult(phase=SyncPhase.IDLE)

        rates = await self._provider.fetch_historical(
            step.target, self._base_currency, codes
        )

        history, missing = apply_sync_step(currencies, step, rates.rates)
        # The base currency is never quoted against itself
        missing = [code for code in missing if code != self._base_currency]
        if missing:
            logger.warning(
                "provider_missing_codes",
                date=step.target.isoformat(),
                codes=missing,
            )

        written = await self._store.save_sync_step(currencies, history)

        result = CurrencySyncResult(
            phase=step.phase,
            target=step.target,
            history_rows=written,
            missing_codes=missing,
            history_ended=step.target == EPOCH_DATE,
        )
        logger.info(
            "currency_sync_step_done",
            phase=step.phase.value,
            date=step.target.isoformat(),
            history_rows=written,
            history_ended=result.history_ended,
        )
        return result

    def _driver(self, currencies: list[Currency]) -> Currency:
        for cur in currencies:
            if cur.code == self._base_currency:
                return cur
        return currencies[0]
