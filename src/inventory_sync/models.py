"""Shared data models for the inventory sync service.

CRITICAL: Rates, prices and profits use Decimal. Floats only appear at the
outbound JSON boundary (``to_payload``), where the message contract is numeric.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Backward history walk stops here
EPOCH_DATE = date(2000, 1, 1)


# ──────────────────────────────────────────────
# Currency state (persisted)
# ──────────────────────────────────────────────


@dataclass
class Currency:
    """A currency row and its synchronized date range.

    Once both dates are set, first_date <= last_date.
    """

    id: int
    code: str
    first_date: date | None = None
    last_date: date | None = None
    last_value: Decimal | None = None
    history_ended: bool = False


@dataclass
class CurrencyHistoryEntry:
    """One rate for one currency on one day. Unique per (currency_id, day)."""

    currency_id: int
    day: date
    value: Decimal


# ──────────────────────────────────────────────
# Inventory entities (owned by the CRUD layer, read-only here)
# ──────────────────────────────────────────────


@dataclass
class AgentProfile:
    """A remote agent reachable over mutual TLS.

    scan_interval is expressed in scheduler ticks.
    """

    id: int
    username: str
    name: str
    remote_url: str
    ssl_cert_ref: str
    ssl_key_ref: str
    scan_interval: int


@dataclass
class TradingSystemRef:
    """The part of a local trading system the scanner needs."""

    id: int
    username: str
    name: str
    external_ref: str
    broker_product_id: int


# ──────────────────────────────────────────────
# Agent wire format (inbound)
# ──────────────────────────────────────────────


class _AgentWireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RawTrade(_AgentWireModel):
    """A trade as reported by an agent.

    Dates are YYYYMMDD integers, times HHMM integers, position is +1/-1.
    Absent numeric fields read as zero; the translator rejects the trade
    list they belong to rather than the whole agent payload.
    """

    entry_date: int = Field(default=0, alias="entryDate")
    entry_time: int = Field(default=0, alias="entryTime")
    entry_price: Decimal = Field(default=Decimal(0), alias="entryPrice")
    entry_label: str = Field(default="", alias="entryLabel")
    exit_date: int = Field(default=0, alias="exitDate")
    exit_time: int = Field(default=0, alias="exitTime")
    exit_price: Decimal = Field(default=Decimal(0), alias="exitPrice")
    exit_label: str = Field(default="", alias="exitLabel")
    gross_profit: Decimal = Field(default=Decimal(0), alias="grossProfit")
    contracts: int = 0
    position: int = 0


class RawTradeList(_AgentWireModel):
    trades: list[RawTrade] = Field(default_factory=list)


class RemoteTradingSystem(_AgentWireModel):
    """A trading system as reported by an agent, with its trade lists."""

    name: str
    data_symbol: str = Field(default="", alias="dataSymbol")
    trade_lists: list[RawTradeList] = Field(default_factory=list, alias="tradeLists")


# ──────────────────────────────────────────────
# Canonical trades (outbound)
# ──────────────────────────────────────────────


class TradeType(str, Enum):
    """Trade direction."""

    LONG = "LO"
    SHORT = "SH"


@dataclass
class CanonicalTradeItem:
    """A translated trade with absolute, zone-aware timestamps."""

    trade_type: TradeType
    entry_date: datetime
    entry_price: Decimal
    entry_label: str
    exit_date: datetime
    exit_price: Decimal
    exit_label: str
    gross_profit: Decimal
    contracts: int

    def to_payload(self) -> dict:
        return {
            "tradeType": self.trade_type.value,
            "entryDate": self.entry_date.isoformat(),
            "entryPrice": float(self.entry_price),
            "entryLabel": self.entry_label,
            "exitDate": self.exit_date.isoformat(),
            "exitPrice": float(self.exit_price),
            "exitLabel": self.exit_label,
            "grossProfit": float(self.gross_profit),
            "contracts": self.contracts,
        }


@dataclass
class TradeListMessage:
    """Unit of publication: every trade of one reported trade list, in order."""

    trading_system_id: int
    trades: list[CanonicalTradeItem] = field(default_factory=list)

    def to_payload(self) -> dict:
        return {
            "tradingSystemId": self.trading_system_id,
            "trades": [trade.to_payload() for trade in self.trades],
        }
