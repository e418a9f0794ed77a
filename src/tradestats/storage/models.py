"""SQLAlchemy models for persistent storage.

This module defines the schema for stored wallet trade history together with
the user's annotations on each trade.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TradeHistoryModel(Base):
    """One executed swap for a tracked wallet."""

    __tablename__ = "trading_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False)
    signature: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(4), nullable=False)

    token_address: Mapped[str] = mapped_column(String(64), nullable=False)
    token_symbol: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    token_logo_uri: Mapped[str | None] = mapped_column(Text, nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 12), nullable=False)
    value_usd: Mapped[Decimal] = mapped_column(Numeric(24, 8), nullable=False)
    value_sol: Mapped[Decimal] = mapped_column(Numeric(24, 9), nullable=False, default=Decimal(0))
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # User annotations
    starred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        UniqueConstraint("wallet_address", "signature", name="uq_trading_history_wallet_signature"),
        Index("idx_trading_history_wallet", "wallet_address"),
        Index("idx_trading_history_wallet_ts", "wallet_address", "timestamp"),
    )
