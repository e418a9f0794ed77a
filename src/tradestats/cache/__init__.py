"""Caching layer - Coalesced, TTL-bounded wallet trade snapshots."""

from tradestats.cache.wallet_cache import (
    DEFAULT_CACHE_TTL_SECONDS,
    CacheEntry,
    FetchTrades,
    SourceFetchError,
    WalletDataCache,
)

__all__ = [
    "DEFAULT_CACHE_TTL_SECONDS",
    "CacheEntry",
    "FetchTrades",
    "SourceFetchError",
    "WalletDataCache",
]
