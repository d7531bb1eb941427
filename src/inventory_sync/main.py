"""Entry point for the inventory sync service.

Wires all components together, optionally embeds the FastAPI status API,
and starts the scheduler. When the status API is enabled (default), the
scheduler and the API share one asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

SIGINT/SIGTERM stop the scheduler; in-flight ticks finish first.

Component wiring order (in _build_components):
1. InventoryDatabase (SQLite connection, schema)
2. CurrencyStore / InventoryStore
3. CurrencyProviderClient
4. CurrencySyncEngine
5. AgentClient, QueuePublisher, MessageDispatcher
6. AgentScanEngine
7. Scheduler with one PeriodicJob per engine
"""

import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from inventory_sync.agents.client import AgentClient
from inventory_sync.agents.scanner import AgentScanEngine, AgentScanState
from inventory_sync.config import AppSettings
from inventory_sync.currency.provider import CurrencyProviderClient
from inventory_sync.currency.sync import CurrencySyncEngine
from inventory_sync.data.database import InventoryDatabase
from inventory_sync.data.store import CurrencyStore, InventoryStore
from inventory_sync.logging import get_logger, setup_logging
from inventory_sync.messaging.dispatcher import MessageDispatcher
from inventory_sync.messaging.publisher import QueuePublisher
from inventory_sync.scheduler import PeriodicJob, Scheduler

CURRENCY_JOB = "currency_sync"
AGENT_JOB = "agent_scan"


async def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all service components from settings.

    Note: Does NOT connect the database or the provider client -- that
    happens in _startup().

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("inventory_sync.main")

    database = InventoryDatabase(settings.database.path)
    currency_store = CurrencyStore(database)
    inventory_store = InventoryStore(database)

    provider = CurrencyProviderClient(settings.provider)
    if not settings.provider.api_key.get_secret_value():
        logger.warning(
            "no_provider_api_key_configured",
            note="Currency sync ticks will fail until PROVIDER_API_KEY is set.",
        )

    currency_engine = CurrencySyncEngine(
        store=currency_store,
        provider=provider,
        base_currency=settings.currency.base_currency,
    )

    publisher = QueuePublisher(
        max_size=settings.messaging.queue_size,
        recent_size=settings.messaging.recent_size,
        put_timeout=settings.messaging.put_timeout_seconds,
    )
    dispatcher = MessageDispatcher(
        publisher.queue,
        drain_timeout=settings.messaging.drain_timeout_seconds,
    )
    scan_engine = AgentScanEngine(
        store=inventory_store,
        client=AgentClient(settings.agent),
        publisher=publisher,
        state=AgentScanState(),
        topic=settings.agent.trade_topic,
    )

    scheduler = Scheduler()
    scheduler.add_job(
        PeriodicJob(
            CURRENCY_JOB,
            currency_engine.tick,
            interval=settings.currency.sync_interval_seconds,
            initial_delay=settings.currency.initial_delay_seconds,
            tick_timeout=settings.currency.tick_timeout_seconds,
        )
    )
    scheduler.add_job(
        PeriodicJob(
            AGENT_JOB,
            scan_engine.tick,
            interval=settings.agent.scan_interval_seconds,
            initial_delay=settings.agent.initial_delay_seconds,
            tick_timeout=settings.agent.tick_timeout_seconds,
        )
    )

    return {
        "database": database,
        "currency_store": currency_store,
        "inventory_store": inventory_store,
        "provider": provider,
        "currency_engine": currency_engine,
        "publisher": publisher,
        "dispatcher": dispatcher,
        "scan_engine": scan_engine,
        "scheduler": scheduler,
    }


async def _startup(settings: AppSettings, components: dict[str, Any]) -> None:
    """Open connections, seed configured currencies and start the jobs."""
    await components["database"].connect()
    await components["currency_store"].ensure_currencies(settings.currency.codes)
    await components["provider"].connect()
    await components["dispatcher"].start()
    await components["scheduler"].start()


async def _shutdown(components: dict[str, Any]) -> None:
    """Stop the jobs, flush queued messages, then release connections."""
    await components["scheduler"].stop()
    await components["dispatcher"].stop()
    await components["provider"].close()
    await components["database"].close()


def _setup_signal_handlers(stop: Any) -> None:
    """Route SIGINT/SIGTERM to ``stop`` (a zero-argument callable).

    Must be called after the asyncio event loop is running.
    """
    logger = get_logger("inventory_sync.main")
    loop = asyncio.get_running_loop()

    def _handler() -> None:
        logger.info("shutdown_signal_received")
        stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage service lifecycle within the FastAPI application.

    On startup: exposes components on app.state for the status routes and
    starts the scheduler. On shutdown: stops the scheduler and closes
    connections.
    """
    logger = get_logger("inventory_sync.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    app.state.scheduler = components["scheduler"]
    app.state.currency_store = components["currency_store"]
    app.state.inventory_store = components["inventory_store"]
    app.state.scan_engine = components["scan_engine"]
    app.state.publisher = components["publisher"]

    await _startup(settings, components)
    logger.info("lifespan_started", db_path=settings.database.path)

    yield

    await _shutdown(components)
    logger.info("inventory_sync_stopped")


async def run() -> None:
    """Run the sync service.

    With DASHBOARD_ENABLED=true (default) the scheduler runs inside the
    uvicorn-served status API; uvicorn handles the signals. Otherwise the
    scheduler runs on its own until SIGINT/SIGTERM.
    """
    settings = AppSettings()

    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("inventory_sync.main")

    components = await _build_components(settings)

    if settings.dashboard.enabled:
        from inventory_sync.dashboard.app import create_dashboard_app

        app = create_dashboard_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_status_api",
            host=settings.dashboard.host,
            port=settings.dashboard.port,
        )

        config = uvicorn.Config(
            app,
            host=settings.dashboard.host,
            port=settings.dashboard.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        await server.serve()
    else:
        stop_event = asyncio.Event()
        _setup_signal_handlers(stop_event.set)

        logger.info(
            "starting_without_status_api",
            currency_interval=settings.currency.sync_interval_seconds,
            scan_interval=settings.agent.scan_interval_seconds,
        )

        try:
            await _startup(settings, components)
            await stop_event.wait()
        finally:
            await _shutdown(components)
            logger.info("inventory_sync_stopped")


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
