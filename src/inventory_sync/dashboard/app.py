"""FastAPI status application factory."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from inventory_sync.dashboard.routes import api


def create_dashboard_app(lifespan: Any = None) -> FastAPI:
    """Create the read-only status API.

    Route handlers read components from ``app.state``: scheduler,
    currency_store, inventory_store, scan_engine and publisher. main.py
    (or a test) sets them before serving.

    Args:
        lifespan: Optional async context manager for startup/shutdown.
    """
    app = FastAPI(
        title="Inventory Sync Status",
        lifespan=lifespan,
    )
    app.include_router(api.router, prefix="/api")
    return app
