"""Tests for reported trade translation."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from inventory_sync.agents.translator import (
    decode_date,
    decode_time,
    format_wall_clock,
    parse_local_timestamp,
    resolve_timezone,
    trade_type_from_position,
    translate_trade,
    translate_trade_list,
)
from inventory_sync.exceptions import TimezoneResolutionError, TranslationError
from inventory_sync.models import RawTrade, TradeType


def _raw(**overrides) -> RawTrade:
    data = {
        "entryDate": 20240115,
        "entryTime": 930,
        "entryPrice": 4780.25,
        "entryLabel": "LE",
        "exitDate": 20240116,
        "exitTime": 1545,
        "exitPrice": 4795.5,
        "exitLabel": "LX",
        "grossProfit": 762.5,
        "contracts": 1,
        "position": 1,
    }
    data.update(overrides)
    return RawTrade.model_validate(data)


class TestDecoding:
    def test_decode_date(self) -> None:
        assert decode_date(20240115) == (2024, 1, 15)

    def test_decode_time(self) -> None:
        assert decode_time(930) == (9, 30)
        assert decode_time(0) == (0, 0)
        assert decode_time(2359) == (23, 59)

    def test_format_wall_clock(self) -> None:
        assert format_wall_clock(20240115, 930) == "2024-01-15 09:30:00"

    def test_parse_in_utc(self) -> None:
        ts = parse_local_timestamp(20240115, 930, resolve_timezone("UTC"))
        assert ts == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        assert ts.utcoffset() == timedelta(0)

    def test_parse_in_exchange_zone(self) -> None:
        ts = parse_local_timestamp(20240115, 930, ZoneInfo("America/New_York"))
        assert ts == datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)

    def test_dst_gap_moves_forward(self) -> None:
        # 2024-03-10 02:00 CST jumps to 03:00 CDT in Chicago
        ts = parse_local_timestamp(20240310, 230, ZoneInfo("America/Chicago"))
        assert ts == datetime(2024, 3, 10, 8, 30, tzinfo=timezone.utc)
        assert ts.isoformat() == "2024-03-10T03:30:00-05:00"

    def test_dst_overlap_takes_first_occurrence(self) -> None:
        # 01:30 happens twice on 2024-11-03 in Chicago; the CDT one comes first
        ts = parse_local_timestamp(20241103, 130, ZoneInfo("America/Chicago"))
        assert ts == datetime(2024, 11, 3, 6, 30, tzinfo=timezone.utc)
        assert ts.isoformat() == "2024-11-03T01:30:00-05:00"

    @pytest.mark.parametrize(
        "date_value, time_value",
        [
            (20241315, 930),  # month 13
            (20240230, 930),  # Feb 30
            (20240115, 2460),  # minute 60
            (20240115, 2500),  # hour 25
            (0, 0),
            (-20240115, 930),
        ],
    )
    def test_invalid_wall_clock_raises(self, date_value: int, time_value: int) -> None:
        with pytest.raises(ValueError):
            parse_local_timestamp(date_value, time_value, timezone.utc)


class TestResolveTimezone:
    def test_literal_utc(self) -> None:
        assert resolve_timezone("utc") is timezone.utc

    def test_iana_name(self) -> None:
        assert resolve_timezone("Europe/Rome") == ZoneInfo("Europe/Rome")

    @pytest.mark.parametrize("name", ["Mars/Olympus", "", None])
    def test_unknown_raises(self, name) -> None:
        with pytest.raises(TimezoneResolutionError):
            resolve_timezone(name)


class TestPositionMapping:
    def test_long(self) -> None:
        assert trade_type_from_position(1) is TradeType.LONG
        assert TradeType.LONG.value == "LO"

    def test_short(self) -> None:
        assert trade_type_from_position(-1) is TradeType.SHORT
        assert TradeType.SHORT.value == "SH"

    @pytest.mark.parametrize("position", [0, 2, -2, 100])
    def test_other_codes_fail(self, position: int) -> None:
        with pytest.raises(TranslationError) as exc_info:
            trade_type_from_position(position)
        assert exc_info.value.field == "position"


class TestTranslateTrade:
    def test_translates_all_fields(self) -> None:
        item = translate_trade(_raw(), timezone.utc)

        assert item.trade_type is TradeType.LONG
        assert item.entry_date == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        assert item.exit_date == datetime(2024, 1, 16, 15, 45, tzinfo=timezone.utc)
        assert item.entry_price == Decimal("4780.25")
        assert item.exit_label == "LX"
        assert item.gross_profit == Decimal("762.5")
        assert item.contracts == 1

    def test_payload_shape(self) -> None:
        payload = translate_trade(_raw(position=-1), timezone.utc).to_payload()
        assert payload == {
            "tradeType": "SH",
            "entryDate": "2024-01-15T09:30:00+00:00",
            "entryPrice": 4780.25,
            "entryLabel": "LE",
            "exitDate": "2024-01-16T15:45:00+00:00",
            "exitPrice": 4795.5,
            "exitLabel": "LX",
            "grossProfit": 762.5,
            "contracts": 1,
        }

    def test_zero_contracts_fails(self) -> None:
        with pytest.raises(TranslationError) as exc_info:
            translate_trade(_raw(contracts=0), timezone.utc, index=4)
        assert exc_info.value.field == "contracts"
        assert exc_info.value.trade_index == 4

    def test_bad_entry_date_fails(self) -> None:
        with pytest.raises(TranslationError) as exc_info:
            translate_trade(_raw(entryDate=20241340), timezone.utc)
        assert exc_info.value.field == "entry"

    def test_bad_exit_time_fails(self) -> None:
        with pytest.raises(TranslationError) as exc_info:
            translate_trade(_raw(exitTime=2599), timezone.utc)
        assert exc_info.value.field == "exit"

    def test_bad_position_carries_index(self) -> None:
        with pytest.raises(TranslationError) as exc_info:
            translate_trade(_raw(position=0), timezone.utc, index=2)
        assert exc_info.value.trade_index == 2


class TestTranslateTradeList:
    def test_keeps_order(self) -> None:
        trades = [_raw(entryTime=900), _raw(entryTime=1000, position=-1)]
        items = translate_trade_list(trades, timezone.utc)
        assert [item.entry_date.hour for item in items] == [9, 10]
        assert [item.trade_type for item in items] == [TradeType.LONG, TradeType.SHORT]

    def test_one_bad_trade_fails_whole_list(self) -> None:
        trades = [_raw(), _raw(contracts=0)]
        with pytest.raises(TranslationError) as exc_info:
            translate_trade_list(trades, timezone.utc)
        assert exc_info.value.trade_index == 1

    def test_empty_list(self) -> None:
        assert translate_trade_list([], timezone.utc) == []
