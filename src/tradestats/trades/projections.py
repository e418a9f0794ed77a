"""Page-specific views over aggregated wallet trades."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from tradestats.trades.aggregator import aggregate, group_by_token, is_aggregatable
from tradestats.trades.models import (
    OpenPosition,
    PerformancePoint,
    PortfolioSummary,
    ProcessedData,
    RawAnalysisResult,
    TokenPerformanceRecord,
    Trade,
    TradeLogEntry,
)

# Net positions at or below this many token units are treated as fully closed.
DEFAULT_DUST_THRESHOLD = Decimal("0.001")


def top_trades(
    records: Mapping[str, TokenPerformanceRecord] | Iterable[TokenPerformanceRecord],
    *,
    limit: int | None = None,
) -> list[TokenPerformanceRecord]:
    """Closed positions ordered by realized profit, best first."""
    values = records.values() if isinstance(records, Mapping) else records
    ranked = sorted(values, key=lambda r: (-r.profit_loss, r.token_address))
    return ranked if limit is None else ranked[:limit]


def open_positions(
    trades: Iterable[Trade],
    *,
    starred_tokens: Collection[str] = (),
    dust_threshold: Decimal = DEFAULT_DUST_THRESHOLD,
) -> list[OpenPosition]:
    """Tokens the wallet still holds, largest remaining cost basis first."""
    positions: list[OpenPosition] = []
    for token_address, bucket in group_by_token(trades).items():
        net = bucket.total_bought - bucket.total_sold
        if net <= dust_threshold:
            continue
        last_trade = max(bucket.buys + bucket.sells, key=lambda t: t.timestamp)
        positions.append(
            OpenPosition(
                token_address=token_address,
                token_symbol=bucket.token_symbol,
                token_logo_uri=bucket.token_logo_uri,
                total_bought=bucket.total_bought,
                total_sold=bucket.total_sold,
                net_position=net,
                cost_basis_usd=bucket.total_buy_value_usd - bucket.total_sell_value_usd,
                last_trade_at=last_trade.timestamp,
                starred=bucket.starred or token_address in starred_tokens,
            )
        )
    positions.sort(key=lambda p: (-p.cost_basis_usd, p.token_address))
    return positions


def _newest_first(trades: Iterable[Trade]) -> list[Trade]:
    return sorted(
        (t for t in trades if is_aggregatable(t)),
        key=lambda t: (t.timestamp, t.signature),
        reverse=True,
    )


def trade_log(
    trades: Iterable[Trade],
    *,
    starred_tokens: Collection[str] = (),
    limit: int | None = None,
    offset: int = 0,
) -> list[TradeLogEntry]:
    """Starred trades, newest first.

    A trade is included when it is starred itself or its token is in
    ``starred_tokens`` (annotations persisted outside the trade source).
    """
    if offset < 0:
        raise ValueError("offset must be non-negative")
    entries = [
        TradeLogEntry.from_trade(t, starred=True)
        for t in _newest_first(trades)
        if t.starred or t.token_address in starred_tokens
    ]
    end = None if limit is None else offset + limit
    return entries[offset:end]


def trading_history(trades: Iterable[Trade]) -> list[TradeLogEntry]:
    """Every valid trade, newest first."""
    return [TradeLogEntry.from_trade(t) for t in _newest_first(trades)]


def token_trades(trades: Iterable[Trade], token_address: str) -> list[Trade]:
    """All trades for one token, newest first."""
    return [t for t in _newest_first(trades) if t.token_address == token_address]


def portfolio_summary(trades: Iterable[Trade]) -> PortfolioSummary:
    valid = [t for t in trades if is_aggregatable(t)]
    if not valid:
        return PortfolioSummary()

    closed = list(aggregate(valid).values())
    total_volume = sum((t.value_usd for t in valid), Decimal(0))
    winners = [r for r in closed if r.profit_loss > 0]

    return PortfolioSummary(
        total_trades=len(valid),
        total_volume_usd=total_volume,
        total_pnl=sum((t.signed_value_usd for t in valid), Decimal(0)),
        unique_tokens=len({t.token_address for t in valid}),
        closed_positions=len(closed),
        win_rate=(len(winners) / len(closed)) * 100 if closed else 0.0,
        best_trade=max((r.profit_loss for r in closed), default=Decimal(0)),
        worst_trade=min((r.profit_loss for r in closed), default=Decimal(0)),
        average_trade_size=total_volume / len(valid),
    )


def performance_series(
    trades: Iterable[Trade],
    *,
    bucket: timedelta = timedelta(hours=1),
) -> list[PerformancePoint]:
    """Cumulative cash-flow P/L, one point per non-empty time bucket."""
    width = int(bucket.total_seconds())
    if width <= 0:
        raise ValueError("bucket must be at least one second")

    per_bucket: dict[int, Decimal] = {}
    for trade in trades:
        if not is_aggregatable(trade):
            continue
        start = (int(trade.timestamp.timestamp()) // width) * width
        per_bucket[start] = per_bucket.get(start, Decimal(0)) + trade.signed_value_usd

    points: list[PerformancePoint] = []
    cumulative = Decimal(0)
    for start in sorted(per_bucket):
        cumulative += per_bucket[start]
        points.append(
            PerformancePoint(
                bucket_start=datetime.fromtimestamp(start, tz=UTC),
                pnl=per_bucket[start],
                cumulative_pnl=cumulative,
            )
        )
    return points


def build_processed_data(
    analysis: RawAnalysisResult,
    *,
    starred_tokens: Collection[str] = (),
) -> ProcessedData:
    """Compute every page projection for one raw snapshot."""
    trades = analysis.trades
    return ProcessedData(
        top_trades=tuple(top_trades(aggregate(trades, starred_tokens=starred_tokens))),
        open_positions=tuple(open_positions(trades, starred_tokens=starred_tokens)),
        trade_log=tuple(trade_log(trades, starred_tokens=starred_tokens)),
        trading_history=tuple(trading_history(trades)),
        summary=portfolio_summary(trades),
    )
