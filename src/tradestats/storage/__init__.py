"""Storage layer - Trade history schema, repository and trade source."""

from tradestats.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from tradestats.storage.models import Base, TradeHistoryModel
from tradestats.storage.repos import TradeHistoryRepository, TradeHistorySource

__all__ = [
    "Base",
    "DatabaseManager",
    "TradeHistoryModel",
    "TradeHistoryRepository",
    "TradeHistorySource",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
