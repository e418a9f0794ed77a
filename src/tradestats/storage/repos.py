"""Repository and trade source over the stored trading history."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from tradestats.storage.models import TradeHistoryModel
from tradestats.trades.models import Trade, TradeType

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tradestats.storage.database import DatabaseManager

logger = logging.getLogger(__name__)


def _as_utc(ts: datetime) -> datetime:
    # SQLite drops tzinfo on the way back out.
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=UTC)


def trade_from_model(model: TradeHistoryModel) -> Trade:
    return Trade(
        signature=model.signature,
        token_address=model.token_address,
        type=TradeType(model.type),
        amount=model.amount,
        value_usd=model.value_usd,
        timestamp=_as_utc(model.timestamp),
        token_symbol=model.token_symbol,
        token_logo_uri=model.token_logo_uri,
        value_sol=model.value_sol,
        starred=model.starred,
        notes=model.notes,
    )


class TradeHistoryRepository:
    """Repository for a wallet's stored trades and their annotations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_many(self, wallet_address: str, trades: Iterable[Trade]) -> int:
        """Insert new trades, refreshing market fields of ones already stored.

        Annotations (``starred``, ``notes``) of existing rows are preserved.

        Returns:
            Number of newly inserted rows.
        """
        incoming = {t.signature: t for t in trades if t.signature}
        if not incoming:
            return 0

        result = await self.session.execute(
            select(TradeHistoryModel).where(
                TradeHistoryModel.wallet_address == wallet_address,
                TradeHistoryModel.signature.in_(list(incoming)),
            )
        )
        existing = {m.signature: m for m in result.scalars()}

        inserted = 0
        for signature, trade in incoming.items():
            model = existing.get(signature)
            if model is None:
                self.session.add(
                    TradeHistoryModel(
                        wallet_address=wallet_address,
                        signature=signature,
                        type=trade.type.value,
                        token_address=trade.token_address,
                        token_symbol=trade.token_symbol,
                        token_logo_uri=trade.token_logo_uri,
                        amount=trade.amount,
                        value_usd=trade.value_usd,
                        value_sol=trade.value_sol,
                        timestamp=trade.timestamp,
                        starred=trade.starred,
                        notes=trade.notes,
                    )
                )
                inserted += 1
                continue

            model.type = trade.type.value
            model.token_address = trade.token_address
            model.token_symbol = trade.token_symbol
            model.token_logo_uri = trade.token_logo_uri
            model.amount = trade.amount
            model.value_usd = trade.value_usd
            model.value_sol = trade.value_sol
            model.timestamp = trade.timestamp

        await self.session.flush()
        logger.debug(
            "Stored %d trades for wallet %s (%d new)", len(incoming), wallet_address, inserted
        )
        return inserted

    async def list_for_wallet(self, wallet_address: str) -> list[Trade]:
        result = await self.session.execute(
            select(TradeHistoryModel)
            .where(TradeHistoryModel.wallet_address == wallet_address)
            .order_by(TradeHistoryModel.timestamp.asc(), TradeHistoryModel.signature.asc())
        )
        return [trade_from_model(m) for m in result.scalars()]

    async def set_starred(self, wallet_address: str, signature: str, starred: bool) -> bool:
        """Toggle the star on a trade. Returns False if no such trade exists."""
        result = await self.session.execute(
            update(TradeHistoryModel)
            .where(
                TradeHistoryModel.wallet_address == wallet_address,
                TradeHistoryModel.signature == signature,
            )
            .values(starred=starred)
        )
        return bool(result.rowcount)

    async def set_notes(self, wallet_address: str, signature: str, notes: str | None) -> bool:
        result = await self.session.execute(
            update(TradeHistoryModel)
            .where(
                TradeHistoryModel.wallet_address == wallet_address,
                TradeHistoryModel.signature == signature,
            )
            .values(notes=notes)
        )
        return bool(result.rowcount)

    async def starred_token_addresses(self, wallet_address: str) -> frozenset[str]:
        result = await self.session.execute(
            select(TradeHistoryModel.token_address)
            .where(
                TradeHistoryModel.wallet_address == wallet_address,
                TradeHistoryModel.starred.is_(True),
            )
            .distinct()
        )
        return frozenset(result.scalars())


class TradeHistorySource:
    """Trade source backed by the ``trading_history`` table.

    ``fetch_trades`` matches the callable expected by ``WalletDataCache``.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def fetch_trades(self, wallet_address: str) -> list[Trade]:
        async with self._db.get_async_session() as session:
            trades = await TradeHistoryRepository(session).list_for_wallet(wallet_address)
        logger.debug("Fetched %d stored trades for wallet %s", len(trades), wallet_address)
        return trades
