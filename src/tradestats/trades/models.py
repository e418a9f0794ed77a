"""Data models for wallet trade analytics."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


class TradeParseError(Exception):
    """Raised when a raw trade row carries an unrecognized trade type."""


class TradeType(str, Enum):
    """Direction of a swap relative to the non-base token."""

    BUY = "BUY"
    SELL = "SELL"


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    try:
        d = Decimal(str(value))
    except InvalidOperation:
        return Decimal(0)
    return d if d.is_finite() else Decimal(0)


def parse_timestamp(raw: Any) -> datetime:
    """Parse epoch seconds, epoch milliseconds or ISO-8601 into an aware UTC datetime."""
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is not None else raw.replace(tzinfo=UTC)
    if isinstance(raw, (int, float)):
        ts_f = float(raw)
        if ts_f > 1e12:
            ts_f /= 1000.0
        return datetime.fromtimestamp(ts_f, tz=UTC)
    if isinstance(raw, str):
        with contextlib.suppress(ValueError):
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=UTC)
            return parsed.astimezone(UTC)
        with contextlib.suppress(ValueError):
            return parse_timestamp(float(raw))
    return datetime.fromtimestamp(0, tz=UTC)


@dataclass(frozen=True)
class Trade:
    """One executed swap observed for a wallet.

    Trades are immutable once observed. ``starred`` and ``notes`` are user
    annotations owned by the storage layer and are ignored by aggregation.
    """

    signature: str
    token_address: str
    type: TradeType
    amount: Decimal
    value_usd: Decimal
    timestamp: datetime

    # Display metadata
    token_symbol: str = ""
    token_logo_uri: str | None = None
    value_sol: Decimal = Decimal(0)

    # Annotations
    starred: bool = False
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Trade:
        """Create a Trade from a camelCase or snake_case row.

        Missing token addresses and non-positive amounts are accepted here;
        aggregation skips such records.

        Raises:
            TradeParseError: If the trade type is neither BUY nor SELL.
        """
        type_raw = str(data.get("type", data.get("side", ""))).upper()
        try:
            trade_type = TradeType(type_raw)
        except ValueError as e:
            raise TradeParseError(f"Unknown trade type: {type_raw!r}") from e

        return cls(
            signature=str(data.get("signature") or ""),
            token_address=str(
                data.get("tokenAddress") or data.get("token_address") or data.get("tokenMint") or ""
            ),
            type=trade_type,
            amount=_to_decimal(data.get("amount")),
            value_usd=_to_decimal(data.get("valueUSD", data.get("value_usd"))),
            timestamp=parse_timestamp(data.get("timestamp", data.get("blockTime", 0))),
            token_symbol=str(data.get("tokenSymbol") or data.get("token_symbol") or ""),
            token_logo_uri=data.get("tokenLogoURI") or data.get("token_logo_uri") or None,
            value_sol=_to_decimal(data.get("valueSOL", data.get("value_sol"))),
            starred=bool(data.get("starred", False)),
            notes=data.get("notes"),
        )

    @property
    def is_buy(self) -> bool:
        return self.type is TradeType.BUY

    @property
    def is_sell(self) -> bool:
        return self.type is TradeType.SELL

    @property
    def price_usd(self) -> Decimal:
        """USD price per token unit at execution, or 0 for a zero amount."""
        if self.amount == 0:
            return Decimal(0)
        return self.value_usd / self.amount

    @property
    def signed_value_usd(self) -> Decimal:
        """Cash flow of the trade: negative for a BUY, positive for a SELL."""
        if self.type is TradeType.BUY:
            return -self.value_usd
        return self.value_usd


@dataclass
class TokenBucket:
    """Trades for a single token, split by side."""

    token_address: str
    token_symbol: str = ""
    token_logo_uri: str | None = None
    buys: list[Trade] = field(default_factory=list)
    sells: list[Trade] = field(default_factory=list)
    starred: bool = False

    @property
    def total_bought(self) -> Decimal:
        return sum((t.amount for t in self.buys), Decimal(0))

    @property
    def total_sold(self) -> Decimal:
        return sum((t.amount for t in self.sells), Decimal(0))

    @property
    def total_buy_value_usd(self) -> Decimal:
        return sum((t.value_usd for t in self.buys), Decimal(0))

    @property
    def total_sell_value_usd(self) -> Decimal:
        return sum((t.value_usd for t in self.sells), Decimal(0))

    @property
    def is_closed(self) -> bool:
        """True once the token has been both bought and sold."""
        return bool(self.buys) and bool(self.sells)

    @property
    def trade_count(self) -> int:
        return len(self.buys) + len(self.sells)


@dataclass(frozen=True)
class TokenPerformanceRecord:
    """Realized performance for a token with at least one buy and one sell."""

    token_address: str
    token_symbol: str
    token_logo_uri: str | None
    total_bought: Decimal
    total_sold: Decimal
    total_buy_value_usd: Decimal
    total_sell_value_usd: Decimal
    profit_loss: Decimal
    first_buy_at: datetime
    last_sell_at: datetime
    duration: str
    trade_count: int
    starred: bool = False

    @property
    def volume_usd(self) -> Decimal:
        return self.total_buy_value_usd + self.total_sell_value_usd

    @property
    def hold_time(self) -> timedelta:
        """Time from first buy to last sell, clamped at zero."""
        return max(self.last_sell_at - self.first_buy_at, timedelta(0))


@dataclass(frozen=True)
class OpenPosition:
    """A token still held by the wallet (bought more than sold)."""

    token_address: str
    token_symbol: str
    token_logo_uri: str | None
    total_bought: Decimal
    total_sold: Decimal
    net_position: Decimal
    cost_basis_usd: Decimal
    last_trade_at: datetime
    starred: bool = False


@dataclass(frozen=True)
class TradeLogEntry:
    """A single trade shaped for the trade log and history tables."""

    signature: str
    token_address: str
    token_symbol: str
    token_logo_uri: str | None
    type: TradeType
    amount: Decimal
    total_volume: Decimal
    price_usd: Decimal
    profit_loss: Decimal
    timestamp: datetime
    starred: bool = False
    notes: str | None = None

    @classmethod
    def from_trade(cls, trade: Trade, *, starred: bool | None = None) -> TradeLogEntry:
        return cls(
            signature=trade.signature,
            token_address=trade.token_address,
            token_symbol=trade.token_symbol,
            token_logo_uri=trade.token_logo_uri,
            type=trade.type,
            amount=trade.amount,
            total_volume=trade.value_usd,
            price_usd=trade.price_usd,
            profit_loss=trade.signed_value_usd,
            timestamp=trade.timestamp,
            starred=trade.starred if starred is None else starred,
            notes=trade.notes,
        )


@dataclass(frozen=True)
class PortfolioSummary:
    """Headline statistics for a wallet's trading activity."""

    total_trades: int = 0
    total_volume_usd: Decimal = Decimal(0)
    total_pnl: Decimal = Decimal(0)
    unique_tokens: int = 0
    closed_positions: int = 0
    win_rate: float = 0.0
    best_trade: Decimal = Decimal(0)
    worst_trade: Decimal = Decimal(0)
    average_trade_size: Decimal = Decimal(0)


@dataclass(frozen=True)
class PerformancePoint:
    """Cash-flow P/L for one time bucket of the performance chart."""

    bucket_start: datetime
    pnl: Decimal
    cumulative_pnl: Decimal


@dataclass(frozen=True)
class RawAnalysisResult:
    """Deduplicated trades fetched for a wallet at a point in time."""

    wallet_address: str
    trades: tuple[Trade, ...]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def total_trades(self) -> int:
        return len(self.trades)

    @property
    def total_volume_usd(self) -> Decimal:
        return sum((t.value_usd for t in self.trades), Decimal(0))

    @property
    def unique_tokens(self) -> frozenset[str]:
        return frozenset(t.token_address for t in self.trades if t.token_address)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the shared Redis snapshot store."""
        return {
            "wallet_address": self.wallet_address,
            "fetched_at": self.fetched_at.isoformat(),
            "trades": [
                {
                    "signature": t.signature,
                    "token_address": t.token_address,
                    "type": t.type.value,
                    "amount": str(t.amount),
                    "value_usd": str(t.value_usd),
                    "timestamp": t.timestamp.isoformat(),
                    "token_symbol": t.token_symbol,
                    "token_logo_uri": t.token_logo_uri,
                    "value_sol": str(t.value_sol),
                    "starred": t.starred,
                    "notes": t.notes,
                }
                for t in self.trades
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawAnalysisResult:
        return cls(
            wallet_address=str(data["wallet_address"]),
            trades=tuple(Trade.from_dict(t) for t in data.get("trades", [])),
            fetched_at=parse_timestamp(data["fetched_at"]),
        )


@dataclass(frozen=True)
class ProcessedData:
    """Page-specific projections computed from one raw snapshot."""

    top_trades: tuple[TokenPerformanceRecord, ...]
    open_positions: tuple[OpenPosition, ...]
    trade_log: tuple[TradeLogEntry, ...]
    trading_history: tuple[TradeLogEntry, ...]
    summary: PortfolioSummary
