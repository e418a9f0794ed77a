"""Tests for trade data models."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from tradestats.trades.models import (
    RawAnalysisResult,
    TokenPerformanceRecord,
    Trade,
    TradeLogEntry,
    TradeParseError,
    TradeType,
    parse_timestamp,
)


class TestTradeFromDict:
    def test_camel_case_row(self) -> None:
        trade = Trade.from_dict(
            {
                "signature": "sig1",
                "tokenAddress": "MintA",
                "tokenSymbol": "AAA",
                "tokenLogoURI": "https://example.com/a.png",
                "type": "buy",
                "amount": 10,
                "valueUSD": "100.5",
                "timestamp": 1_700_000_000_000,
            }
        )

        assert trade.signature == "sig1"
        assert trade.token_address == "MintA"
        assert trade.token_symbol == "AAA"
        assert trade.token_logo_uri == "https://example.com/a.png"
        assert trade.type is TradeType.BUY
        assert trade.amount == Decimal("10")
        assert trade.value_usd == Decimal("100.5")
        assert trade.timestamp == datetime.fromtimestamp(1_700_000_000, tz=UTC)
        assert trade.starred is False

    def test_snake_case_row(self) -> None:
        trade = Trade.from_dict(
            {
                "signature": "sig2",
                "token_address": "MintB",
                "token_symbol": "BBB",
                "type": "SELL",
                "amount": "2.5",
                "value_usd": 40,
                "timestamp": "2026-01-02T03:04:05Z",
                "starred": True,
                "notes": "took profit",
            }
        )

        assert trade.is_sell
        assert trade.token_address == "MintB"
        assert trade.timestamp == datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)
        assert trade.starred is True
        assert trade.notes == "took profit"

    def test_missing_fields_are_tolerated(self) -> None:
        trade = Trade.from_dict({"type": "BUY", "amount": None})

        assert trade.token_address == ""
        assert trade.amount == Decimal(0)
        assert trade.value_usd == Decimal(0)

    def test_unknown_type_raises(self) -> None:
        with pytest.raises(TradeParseError):
            Trade.from_dict({"type": "TRANSFER", "tokenAddress": "MintA"})


class TestTradeProperties:
    def test_price_and_signed_value(self) -> None:
        ts = datetime(2026, 1, 1, tzinfo=UTC)
        buy = Trade("s1", "MintA", TradeType.BUY, Decimal("4"), Decimal("10"), ts)
        sell = Trade("s2", "MintA", TradeType.SELL, Decimal("4"), Decimal("12"), ts)

        assert buy.price_usd == Decimal("2.5")
        assert buy.signed_value_usd == Decimal("-10")
        assert sell.signed_value_usd == Decimal("12")

    def test_price_of_zero_amount_is_zero(self) -> None:
        trade = Trade("s1", "MintA", TradeType.BUY, Decimal(0), Decimal("10"), datetime.now(UTC))
        assert trade.price_usd == Decimal(0)


def test_parse_timestamp_variants() -> None:
    expected = datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)
    assert parse_timestamp(1_700_000_000) == expected
    assert parse_timestamp(1_700_000_000_000) == expected
    assert parse_timestamp("1700000000") == expected
    assert parse_timestamp(datetime(2023, 11, 14, 22, 13, 20)) == expected


def test_hold_time_is_clamped() -> None:
    ts = datetime(2026, 1, 1, tzinfo=UTC)
    record = TokenPerformanceRecord(
        token_address="MintA",
        token_symbol="AAA",
        token_logo_uri=None,
        total_bought=Decimal(1),
        total_sold=Decimal(1),
        total_buy_value_usd=Decimal(1),
        total_sell_value_usd=Decimal(2),
        profit_loss=Decimal(1),
        first_buy_at=ts,
        last_sell_at=ts - timedelta(minutes=5),
        duration="0 seconds",
        trade_count=2,
    )
    assert record.hold_time == timedelta(0)
    assert record.volume_usd == Decimal(3)


def test_trade_log_entry_from_trade() -> None:
    ts = datetime(2026, 1, 1, tzinfo=UTC)
    trade = Trade("s1", "MintA", TradeType.BUY, Decimal("5"), Decimal("50"), ts, token_symbol="AAA")

    entry = TradeLogEntry.from_trade(trade)

    assert entry.total_volume == Decimal("50")
    assert entry.price_usd == Decimal("10")
    assert entry.profit_loss == Decimal("-50")
    assert entry.starred is False
    assert TradeLogEntry.from_trade(trade, starred=True).starred is True


def test_raw_analysis_result_round_trips_through_dict() -> None:
    ts = datetime(2026, 1, 1, 12, tzinfo=UTC)
    result = RawAnalysisResult(
        wallet_address="Wallet1",
        trades=(
            Trade("s1", "MintA", TradeType.BUY, Decimal("5"), Decimal("50"), ts, starred=True),
            Trade("s2", "MintB", TradeType.SELL, Decimal("1.5"), Decimal("7.25"), ts, notes="n"),
        ),
        fetched_at=ts,
    )

    restored = RawAnalysisResult.from_dict(result.to_dict())

    assert restored == result
    assert restored.total_trades == 2
    assert restored.total_volume_usd == Decimal("57.25")
    assert restored.unique_tokens == frozenset({"MintA", "MintB"})


@pytest.mark.parametrize("raw", ["NaN", "Infinity", "-inf", float("nan"), float("inf")])
def test_non_finite_numbers_parse_as_zero(raw: object) -> None:
    trade = Trade.from_dict({"type": "BUY", "tokenAddress": "MintA", "amount": raw, "valueUSD": raw})

    assert trade.amount == Decimal(0)
    assert trade.value_usd == Decimal(0)


def test_raw_analysis_result_naive_fetched_at_is_utc() -> None:
    result = RawAnalysisResult.from_dict(
        {"wallet_address": "Wallet1", "trades": [], "fetched_at": "2026-01-01T00:00:00"}
    )

    assert result.fetched_at == datetime(2026, 1, 1, tzinfo=UTC)
