"""Tests for logging setup and tick context binding."""

import logging

import pytest
import structlog
from structlog.testing import capture_logs

from inventory_sync.logging import (
    SERVICE_NAME,
    _add_service,
    bind_tick_context,
    clear_tick_context,
    get_logger,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_service_field_added() -> None:
    event = _add_service(None, "info", {"event": "tick_finished"})  # type: ignore[arg-type]
    assert event["service"] == SERVICE_NAME


def test_setup_sets_levels(restore_logging) -> None:
    setup_logging("debug", "json")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("aiohttp").level == logging.WARNING
    assert len(logging.getLogger().handlers) == 1


def test_tick_context_bound_and_cleared() -> None:
    logger = get_logger("inventory_sync.test")
    bind_tick_context("agent_scan", 4)
    try:
        assert structlog.contextvars.get_contextvars() == {"job": "agent_scan", "tick": 4}
    finally:
        clear_tick_context()

    with capture_logs() as logs:
        logger.info("after_tick")
    assert "job" not in logs[0]
    assert structlog.contextvars.get_contextvars() == {}
