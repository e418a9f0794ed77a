"""Trade grouping and per-token performance derivation.

Everything here is a pure function over its input: no I/O, no clock reads.
Malformed trades (no token address, non-positive amount) are skipped rather
than failing the whole batch.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from datetime import timedelta
from typing import Any

from tradestats.trades.models import TokenBucket, TokenPerformanceRecord, Trade, TradeType

logger = logging.getLogger(__name__)

_DURATION_UNITS: tuple[tuple[int, str], ...] = (
    (86_400, "day"),
    (3_600, "hour"),
    (60, "minute"),
)


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def humanize_duration(delta: timedelta) -> str:
    """Render a span using the largest unit whose floored value is at least one.

    Negative spans (clock skew between sources) are clamped to zero.

    Examples:
        >>> humanize_duration(timedelta(days=2, hours=5))
        '2 days'
        >>> humanize_duration(timedelta(0))
        '0 seconds'
    """
    seconds = max(int(delta.total_seconds()), 0)
    for unit_seconds, unit in _DURATION_UNITS:
        value = seconds // unit_seconds
        if value >= 1:
            return _plural(value, unit)
    return _plural(seconds, "second")


def _sort_key(trade: Trade) -> tuple[Any, str]:
    return (trade.timestamp, trade.signature)


def _dedup_key(trade: Trade) -> str | tuple[Any, ...]:
    if trade.signature:
        return trade.signature
    return (trade.token_address, trade.timestamp, trade.type, trade.amount, trade.value_usd)


def deduplicate_trades(trades: Iterable[Trade]) -> list[Trade]:
    """Keep the first occurrence of each trade.

    Trades are identified by signature; unsigned trades fall back to their
    token, time, side, amount and value.
    """
    seen: set[str | tuple[Any, ...]] = set()
    unique: list[Trade] = []
    total = 0
    for trade in trades:
        total += 1
        key = _dedup_key(trade)
        if key in seen:
            continue
        seen.add(key)
        unique.append(trade)

    if len(unique) != total:
        logger.debug("Dropped %d duplicate trades (%d unique)", total - len(unique), len(unique))
    return unique


def is_aggregatable(trade: Trade) -> bool:
    """Return False for records that must not contribute to any total."""
    return (
        bool(trade.token_address)
        and trade.amount.is_finite()
        and trade.value_usd.is_finite()
        and trade.amount > 0
    )


def group_by_token(trades: Iterable[Trade]) -> dict[str, TokenBucket]:
    """Split trades into per-token buy and sell lists.

    Input order is irrelevant: trades are sorted by time first, so display
    fields always come from the earliest trade for each token.
    """
    buckets: dict[str, TokenBucket] = {}
    skipped = 0
    for trade in sorted(trades, key=_sort_key):
        if not is_aggregatable(trade):
            skipped += 1
            continue

        bucket = buckets.get(trade.token_address)
        if bucket is None:
            bucket = TokenBucket(
                token_address=trade.token_address,
                token_symbol=trade.token_symbol,
                token_logo_uri=trade.token_logo_uri,
            )
            buckets[trade.token_address] = bucket

        if trade.type is TradeType.BUY:
            bucket.buys.append(trade)
        elif trade.type is TradeType.SELL:
            bucket.sells.append(trade)

        if trade.starred:
            bucket.starred = True

    if skipped:
        logger.debug("Skipped %d malformed trades during grouping", skipped)
    return buckets


def build_performance_record(
    bucket: TokenBucket,
    *,
    starred: bool = False,
) -> TokenPerformanceRecord:
    """Derive realized metrics for a bucket holding both buys and sells."""
    if not bucket.is_closed:
        raise ValueError(f"Token {bucket.token_address} has no completed round trip")

    first_buy = min(bucket.buys, key=_sort_key)
    last_sell = max(bucket.sells, key=_sort_key)
    total_buy_value = bucket.total_buy_value_usd
    total_sell_value = bucket.total_sell_value_usd

    return TokenPerformanceRecord(
        token_address=bucket.token_address,
        token_symbol=bucket.token_symbol,
        token_logo_uri=bucket.token_logo_uri,
        total_bought=bucket.total_bought,
        total_sold=bucket.total_sold,
        total_buy_value_usd=total_buy_value,
        total_sell_value_usd=total_sell_value,
        profit_loss=total_sell_value - total_buy_value,
        first_buy_at=first_buy.timestamp,
        last_sell_at=last_sell.timestamp,
        duration=humanize_duration(last_sell.timestamp - first_buy.timestamp),
        trade_count=bucket.trade_count,
        starred=bucket.starred or starred,
    )


def aggregate(
    trades: Iterable[Trade],
    *,
    starred_tokens: Collection[str] = (),
) -> dict[str, TokenPerformanceRecord]:
    """Map each closed token (at least one buy and one sell) to its performance.

    The result is unordered; callers sort it for display.
    """
    records: dict[str, TokenPerformanceRecord] = {}
    for token_address, bucket in group_by_token(trades).items():
        if not bucket.is_closed:
            continue
        records[token_address] = build_performance_record(
            bucket,
            starred=token_address in starred_tokens,
        )
    return records
