"""Read-only JSON status endpoints for the sync service."""

from __future__ import annotations

import time
from datetime import date
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from inventory_sync.exceptions import PersistenceError

log = structlog.get_logger(__name__)

router = APIRouter()


def _jsonable(obj: Any) -> Any:
    """Recursively convert Decimal and date values to strings for JSON."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_jsonable(item) for item in obj]
    return obj


@router.get("/health")
async def get_health(request: Request) -> JSONResponse:
    """Liveness plus scheduler state."""
    scheduler = request.app.state.scheduler
    return JSONResponse(content={
        "status": "ok",
        "scheduler_running": scheduler.running,
        "time": time.time(),
    })


@router.get("/jobs")
async def get_jobs(request: Request) -> JSONResponse:
    """Status of every periodic job (last outcome, tick count, failures)."""
    return JSONResponse(content=request.app.state.scheduler.status())


@router.get("/currencies")
async def get_currencies(request: Request) -> JSONResponse:
    """Synchronized date range and last value of every currency."""
    store = request.app.state.currency_store
    try:
        currencies = await store.get_currencies()
    except PersistenceError as e:
        log.error("status_currencies_failed", error=str(e))
        return JSONResponse(status_code=503, content={"error": str(e)})

    return JSONResponse(content=[
        _jsonable({
            "code": cur.code,
            "first_date": cur.first_date,
            "last_date": cur.last_date,
            "last_value": cur.last_value,
            "history_ended": cur.history_ended,
        })
        for cur in currencies
    ])


@router.get("/agents")
async def get_agents(request: Request) -> JSONResponse:
    """Agent profiles with the ticks remaining before their next scan."""
    store = request.app.state.inventory_store
    state = request.app.state.scan_engine.state
    try:
        profiles = await store.get_agent_profiles()
    except PersistenceError as e:
        log.error("status_agents_failed", error=str(e))
        return JSONResponse(status_code=503, content={"error": str(e)})

    return JSONResponse(content=[
        {
            "id": profile.id,
            "name": profile.name,
            "username": profile.username,
            "scan_interval": profile.scan_interval,
            "ticks_remaining": state.remaining(profile.id),
        }
        for profile in profiles
    ])


@router.get("/trade-messages")
async def get_trade_messages(request: Request) -> JSONResponse:
    """Most recent trade list publications, newest first."""
    publisher = request.app.state.publisher
    recent = publisher.recent() if hasattr(publisher, "recent") else []
    return JSONResponse(content=[
        {
            "topic": message.topic,
            "published_at": message.published_at,
            "trading_system_id": message.payload.get("tradingSystemId"),
            "trades": len(message.payload.get("trades", [])),
        }
        for message in recent
    ])
