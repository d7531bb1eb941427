"""Reported trade -> canonical trade translation.

Agents report trades with integer-encoded wall-clock fields:

    entryDate=20240115, entryTime=930  ->  2024-01-15 09:30:00 (local)

The local time is interpreted in the timezone of the exchange the trading
system trades on and converted to an absolute, zone-aware datetime.

Everything here is pure. A trade list translates completely or not at all:
the first failing trade raises TranslationError with its index.
"""

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from inventory_sync.exceptions import TimezoneResolutionError, TranslationError
from inventory_sync.models import CanonicalTradeItem, RawTrade, TradeType

_WALL_CLOCK_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_timezone(name: str | None) -> tzinfo:
    """Map an exchange timezone field to a tzinfo.

    The literal "utc" is UTC; anything else must be an IANA zone name.
    """
    if name == "utc":
        return timezone.utc
    if not name:
        raise TimezoneResolutionError("Exchange has no timezone", timezone_name=name)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise TimezoneResolutionError(f"Unknown timezone {name!r}", timezone_name=name) from e


def decode_date(value: int) -> tuple[int, int, int]:
    """YYYYMMDD -> (year, month, day). No range checking."""
    return value // 10000, (value // 100) % 100, value % 100


def decode_time(value: int) -> tuple[int, int]:
    """HHMM -> (hour, minute). No range checking."""
    return value // 100, value % 100


def format_wall_clock(date_value: int, time_value: int) -> str:
    year, month, day = decode_date(date_value)
    hour, minute = decode_time(time_value)
    return f"{year:04d}-{month:02d}-{day:02d} {hour:02d}:{minute:02d}:00"


def parse_local_timestamp(date_value: int, time_value: int, tz: tzinfo) -> datetime:
    """Parse integer-encoded local date/time in ``tz``.

    Ambiguous times (DST fall-back) take the first occurrence. Times inside a
    DST gap do not exist locally; they are normalized through UTC, so
    02:30 on a spring-forward night becomes 03:30 at the new offset.

    Raises ValueError when the fields do not form a valid wall-clock time.
    """
    if date_value < 0 or time_value < 0:
        raise ValueError(f"negative date/time field: {date_value}/{time_value}")
    naive = datetime.strptime(format_wall_clock(date_value, time_value), _WALL_CLOCK_FORMAT)
    try:
        return naive.replace(tzinfo=tz, fold=0).astimezone(timezone.utc).astimezone(tz)
    except OverflowError as e:
        raise ValueError(f"date/time out of range: {date_value}/{time_value}") from e


def trade_type_from_position(position: int) -> TradeType:
    if position == 1:
        return TradeType.LONG
    if position == -1:
        return TradeType.SHORT
    raise TranslationError(f"Unknown position code {position}", field="position", value=position)


def translate_trade(raw: RawTrade, tz: tzinfo, index: int | None = None) -> CanonicalTradeItem:
    """Translate one reported trade. Raises TranslationError."""
    try:
        trade_type = trade_type_from_position(raw.position)
    except TranslationError as e:
        e.trade_index = index
        raise

    try:
        entry_date = parse_local_timestamp(raw.entry_date, raw.entry_time, tz)
    except ValueError as e:
        raise TranslationError(
            f"Cannot parse entry date/time: {e}",
            trade_index=index,
            field="entry",
            value=(raw.entry_date, raw.entry_time),
        ) from e

    try:
        exit_date = parse_local_timestamp(raw.exit_date, raw.exit_time, tz)
    except ValueError as e:
        raise TranslationError(
            f"Cannot parse exit date/time: {e}",
            trade_index=index,
            field="exit",
            value=(raw.exit_date, raw.exit_time),
        ) from e

    if raw.contracts == 0:
        raise TranslationError(
            "Trade has 0 contracts", trade_index=index, field="contracts", value=0
        )

    return CanonicalTradeItem(
        trade_type=trade_type,
        entry_date=entry_date,
        entry_price=raw.entry_price,
        entry_label=raw.entry_label,
        exit_date=exit_date,
        exit_price=raw.exit_price,
        exit_label=raw.exit_label,
        gross_profit=raw.gross_profit,
        contracts=raw.contracts,
    )


def translate_trade_list(trades: list[RawTrade], tz: tzinfo) -> list[CanonicalTradeItem]:
    """Translate a whole trade list in order, or raise on the first bad trade."""
    return [translate_trade(raw, tz, index) for index, raw in enumerate(trades)]
