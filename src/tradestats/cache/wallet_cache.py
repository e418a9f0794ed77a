"""Per-wallet trade cache with request coalescing.

Loads are single-flight: while a fetch for a wallet is running, every caller
for that wallet awaits the same task. Completed loads are served from memory
until the TTL expires. An optional Redis store lets several processes share
snapshots; it is consulted before the trade source on a normal (non-forced)
load.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from redis.asyncio import Redis

from tradestats.trades.aggregator import deduplicate_trades
from tradestats.trades.models import ProcessedData, RawAnalysisResult, Trade
from tradestats.trades.projections import build_processed_data

if TYPE_CHECKING:
    from tradestats.config import Settings

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CACHE_TTL_SECONDS = 30 * 60  # 30 minutes
DEFAULT_KEY_PREFIX = "tradestats:wallet:"

FetchTrades = Callable[[str], Awaitable[Sequence[Trade]]]
Clock = Callable[[], float]


def _consume_exception(task: asyncio.Task[RawAnalysisResult]) -> None:
    # Marks the error retrieved when every waiter was cancelled before it failed.
    if not task.cancelled():
        task.exception()


class SourceFetchError(Exception):
    """Raised to every waiter when the trade source fails for a wallet."""

    def __init__(self, wallet_address: str, message: str) -> None:
        super().__init__(message)
        self.wallet_address = wallet_address


@dataclass
class CacheEntry:
    """Last successful load for a wallet."""

    wallet_address: str
    raw_data: RawAnalysisResult | None
    loaded_at: float
    processed_data: ProcessedData | None = None


class WalletDataCache:
    """In-memory, TTL-bounded cache of wallet trade snapshots.

    Example:
        ```python
        cache = WalletDataCache(source.fetch_trades, ttl_seconds=1800)
        data = await cache.get_processed_data("7xKX...")
        for record in data.top_trades:
            print(record.token_symbol, record.profit_loss, record.duration)
        ```
    """

    def __init__(
        self,
        fetch_trades: FetchTrades,
        *,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        redis: Redis | None = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            fetch_trades: Async callable returning raw trades for a wallet.
            ttl_seconds: Age after which an entry is reloaded on next access.
            redis: Optional Redis client for sharing snapshots across processes.
            key_prefix: Redis key prefix for shared snapshots.
            clock: Monotonic time source in seconds.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._fetch_trades = fetch_trades
        self._ttl = ttl_seconds
        self._redis = redis
        self._key_prefix = key_prefix
        self._clock = clock

        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Task[RawAnalysisResult]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetch_trades: FetchTrades,
        *,
        redis: Redis | None = None,
    ) -> WalletDataCache:
        return cls(
            fetch_trades,
            ttl_seconds=settings.cache.ttl_seconds,
            redis=redis,
            key_prefix=settings.cache.key_prefix,
        )

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _age(self, entry: CacheEntry) -> float:
        return self._clock() - entry.loaded_at

    def _is_fresh(self, entry: CacheEntry | None) -> bool:
        return entry is not None and entry.raw_data is not None and self._age(entry) < self._ttl

    async def get_wallet_data(
        self,
        wallet_address: str,
        force_refresh: bool = False,
    ) -> RawAnalysisResult:
        """Return the trade snapshot for a wallet, loading it at most once per TTL.

        A load already in flight is always joined, even with ``force_refresh``.

        Raises:
            SourceFetchError: If the underlying fetch failed. Every caller that
                joined the same load receives the same exception.
        """
        in_flight = self._in_flight.get(wallet_address)
        if in_flight is not None:
            logger.debug("Joining in-flight load for wallet %s", wallet_address)
            return await asyncio.shield(in_flight)

        if not force_refresh:
            entry = self._entries.get(wallet_address)
            if self._is_fresh(entry):
                assert entry is not None and entry.raw_data is not None
                logger.debug("Using cached data for wallet %s", wallet_address)
                return entry.raw_data

        logger.info("Loading trades for wallet %s (force_refresh=%s)", wallet_address, force_refresh)
        task = asyncio.get_running_loop().create_task(
            self._load(wallet_address, use_shared=not force_refresh)
        )
        task.add_done_callback(_consume_exception)
        self._in_flight[wallet_address] = task
        return await asyncio.shield(task)

    async def get_processed_data(
        self,
        wallet_address: str,
        force_refresh: bool = False,
    ) -> ProcessedData:
        """Return page projections, computed once per raw snapshot."""
        raw = await self.get_wallet_data(wallet_address, force_refresh)

        entry = self._entries.get(wallet_address)
        owns_snapshot = entry is not None and entry.raw_data is raw
        if owns_snapshot and entry is not None and entry.processed_data is not None:
            logger.debug("Using cached processed data for wallet %s", wallet_address)
            return entry.processed_data

        logger.debug("Processing %d trades for wallet %s", raw.total_trades, wallet_address)
        processed = build_processed_data(raw)
        if owns_snapshot and entry is not None:
            entry.processed_data = processed
        return processed

    def get_cached(self, wallet_address: str, *, allow_stale: bool = False) -> RawAnalysisResult | None:
        """Return the last loaded snapshot without triggering a load."""
        entry = self._entries.get(wallet_address)
        if entry is None:
            return None
        if allow_stale or self._is_fresh(entry):
            return entry.raw_data
        return None

    def has_cached_data(self, wallet_address: str) -> bool:
        return self._is_fresh(self._entries.get(wallet_address))

    def is_loading(self, wallet_address: str) -> bool:
        return wallet_address in self._in_flight

    def time_to_live(self, wallet_address: str) -> int:
        """Whole seconds until the wallet's entry goes stale (0 if absent or stale)."""
        entry = self._entries.get(wallet_address)
        if not self._is_fresh(entry):
            return 0
        assert entry is not None
        return int(max(0.0, self._ttl - self._age(entry)))

    def clear_cache(self, wallet_address: str) -> None:
        """Drop a wallet's entry. An in-flight load still stores its result."""
        self._entries.pop(wallet_address, None)
        logger.info("Cleared cache for wallet %s", wallet_address)

    def clear_all_cache(self) -> None:
        self._entries.clear()
        logger.info("Cleared all wallet cache entries")

    async def _load(self, wallet_address: str, *, use_shared: bool) -> RawAnalysisResult:
        try:
            result = await self._read_shared(wallet_address) if use_shared else None
            if result is not None:
                loaded_at = self._clock() - self._snapshot_age_seconds(result)
            else:
                result = await self._fetch(wallet_address)
                loaded_at = self._clock()
                await self._write_shared(result)

            self._entries[wallet_address] = CacheEntry(
                wallet_address=wallet_address,
                raw_data=result,
                loaded_at=loaded_at,
            )
            logger.info(
                "Cached %d trades across %d tokens for wallet %s",
                result.total_trades,
                len(result.unique_tokens),
                wallet_address,
            )
            return result
        finally:
            if self._in_flight.get(wallet_address) is asyncio.current_task():
                del self._in_flight[wallet_address]

    async def _fetch(self, wallet_address: str) -> RawAnalysisResult:
        try:
            trades = await self._fetch_trades(wallet_address)
        except Exception as e:
            logger.warning("Failed to load trades for wallet %s: %s", wallet_address, e)
            raise SourceFetchError(
                wallet_address,
                f"Failed to load trades for wallet {wallet_address}: {e}",
            ) from e

        unique = deduplicate_trades(trades)
        unique.sort(key=lambda t: (t.timestamp, t.signature))
        return RawAnalysisResult(wallet_address=wallet_address, trades=tuple(unique))

    @staticmethod
    def _snapshot_age_seconds(result: RawAnalysisResult) -> float:
        return max(0.0, (datetime.now(UTC) - result.fetched_at).total_seconds())

    def _shared_key(self, wallet_address: str) -> str:
        return f"{self._key_prefix}{wallet_address}"

    async def _read_shared(self, wallet_address: str) -> RawAnalysisResult | None:
        if not self._redis:
            return None
        try:
            cached = await self._redis.get(self._shared_key(wallet_address))
            if cached is None:
                return None
            data = json.loads(cached if isinstance(cached, str) else cached.decode())
            result = RawAnalysisResult.from_dict(data)
            expired = self._snapshot_age_seconds(result) >= self._ttl
        except Exception as e:
            logger.warning("Failed to read shared snapshot for wallet %s: %s", wallet_address, e)
            return None

        if expired:
            return None
        logger.debug("Using shared snapshot for wallet %s", wallet_address)
        return result

    async def _write_shared(self, result: RawAnalysisResult) -> None:
        if not self._redis:
            return
        try:
            await self._redis.set(
                self._shared_key(result.wallet_address),
                json.dumps(result.to_dict()),
                ex=max(1, int(self._ttl)),
            )
        except Exception as e:
            logger.warning(
                "Failed to write shared snapshot for wallet %s: %s", result.wallet_address, e
            )
