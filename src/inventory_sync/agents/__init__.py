"""Agent trade scanning -- mutual-TLS client, trade translation and scan engine."""

from inventory_sync.agents.client import AgentClient
from inventory_sync.agents.scanner import AgentScanEngine, AgentScanState, ScanReport
from inventory_sync.agents.translator import (
    resolve_timezone,
    translate_trade,
    translate_trade_list,
)

__all__ = [
    "AgentClient",
    "AgentScanEngine",
    "AgentScanState",
    "ScanReport",
    "resolve_timezone",
    "translate_trade",
    "translate_trade_list",
]
