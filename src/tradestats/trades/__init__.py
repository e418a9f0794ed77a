"""Trade analytics layer - Grouping, performance metrics and page views."""

from tradestats.trades.aggregator import (
    aggregate,
    deduplicate_trades,
    group_by_token,
    humanize_duration,
)
from tradestats.trades.models import (
    OpenPosition,
    PortfolioSummary,
    ProcessedData,
    RawAnalysisResult,
    TokenPerformanceRecord,
    Trade,
    TradeLogEntry,
    TradeParseError,
    TradeType,
)
from tradestats.trades.projections import build_processed_data

__all__ = [
    "OpenPosition",
    "PortfolioSummary",
    "ProcessedData",
    "RawAnalysisResult",
    "TokenPerformanceRecord",
    "Trade",
    "TradeLogEntry",
    "TradeParseError",
    "TradeType",
    "aggregate",
    "build_processed_data",
    "deduplicate_trades",
    "group_by_token",
    "humanize_duration",
]
