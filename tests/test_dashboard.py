"""Tests for the read-only status API."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from inventory_sync.agents.scanner import AgentScanState
from inventory_sync.dashboard.app import create_dashboard_app
from inventory_sync.data.store import CurrencyStore, InventoryStore
from inventory_sync.exceptions import PersistenceError
from inventory_sync.messaging.publisher import PublishedMessage
from inventory_sync.models import AgentProfile, Currency
from inventory_sync.scheduler import PeriodicJob, Scheduler


@pytest.fixture
def profile() -> AgentProfile:
    return AgentProfile(
        id=3,
        username="alice",
        name="desk-agent",
        remote_url="https://desk-agent.test/trades",
        ssl_cert_ref="desk-agent.crt",
        ssl_key_ref="desk-agent.key",
        scan_interval=4,
    )


@pytest.fixture
def app(profile: AgentProfile):
    app = create_dashboard_app()

    scheduler = Scheduler()
    scheduler.add_job(PeriodicJob("currency_sync", AsyncMock(), interval=2700))
    app.state.scheduler = scheduler

    currency_store = AsyncMock(spec=CurrencyStore)
    currency_store.get_currencies.return_value = [
        Currency(
            id=1,
            code="EUR",
            first_date=date(2024, 3, 1),
            last_date=date(2024, 3, 9),
            last_value=Decimal("0.9142"),
        ),
        Currency(id=2, code="JPY"),
    ]
    app.state.currency_store = currency_store

    inventory_store = AsyncMock(spec=InventoryStore)
    inventory_store.get_agent_profiles.return_value = [profile]
    app.state.inventory_store = inventory_store

    state = AgentScanState()
    state.advance(profile)
    app.state.scan_engine = MagicMock(state=state)

    publisher = MagicMock()
    publisher.recent.return_value = [
        PublishedMessage(
            topic="runtime.trade",
            payload={"tradingSystemId": 12, "trades": [{}, {}]},
            published_at=1710000000.0,
        )
    ]
    app.state.publisher = publisher
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


class TestStatusApi:
    def test_health(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["scheduler_running"] is False

    def test_jobs(self, client: TestClient) -> None:
        jobs = client.get("/api/jobs").json()
        assert jobs[0]["name"] == "currency_sync"
        assert jobs[0]["ticks"] == 0

    def test_currencies(self, client: TestClient) -> None:
        currencies = client.get("/api/currencies").json()
        assert currencies[0] == {
            "code": "EUR",
            "first_date": "2024-03-01",
            "last_date": "2024-03-09",
            "last_value": "0.9142",
            "history_ended": False,
        }
        assert currencies[1]["last_date"] is None

    def test_currencies_unavailable(self, app, client: TestClient) -> None:
        app.state.currency_store.get_currencies.side_effect = PersistenceError("locked")
        resp = client.get("/api/currencies")
        assert resp.status_code == 503

    def test_agents_show_countdown(self, client: TestClient) -> None:
        agents = client.get("/api/agents").json()
        assert agents == [
            {
                "id": 3,
                "name": "desk-agent",
                "username": "alice",
                "scan_interval": 4,
                "ticks_remaining": 4,
            }
        ]

    def test_trade_messages(self, client: TestClient) -> None:
        messages = client.get("/api/trade-messages").json()
        assert messages == [
            {
                "topic": "runtime.trade",
                "published_at": 1710000000.0,
                "trading_system_id": 12,
                "trades": 2,
            }
        ]
