"""
In-Memory Market Data Cache

Keyed, time-bounded storage for normalized upstream results, shared by every
request the process serves.

Features:
    - Freshness deadlines per entry (fetched_at + TTL, TTL chosen by key kind)
    - Expired entries stay readable as stale fallback until evicted
    - Least-recently-used eviction once capacity is exceeded
    - Single-flight: at most one upstream fetch per key at any instant

Concurrency:
    Designed for a single asyncio event loop. Reads and writes are plain dict
    operations with no await between check and mutation, so they are atomic
    with respect to other coroutines. The only suspension point is the shared
    fetch task inside with_single_flight(). Waiters are shielded from that task,
    so a caller that gives up never cancels a fetch other callers depend on.

Usage:
    cache = MarketDataCache(TTLPolicy.from_settings(settings), capacity=512)

    lookup = cache.get(CacheKey.tokens())
    if lookup is None or not lookup.is_fresh:
        entry = await cache.with_single_flight(CacheKey.tokens(), provider.fetch_token_list)
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional

from core.logging import get_logger
from core.schemas import Resolution, TimeRange
from core.utils.time import current_utc_datetime, datetime_to_timestamp

logger = get_logger(__name__)


# ============================================
# Keys and Entries
# ============================================

@dataclass(frozen=True)
class CacheKey:
    """
    Deterministic cache key derived from the shape of a request.

    String forms:
        "tokens"
        "history:{SYMBOL}:{start_ts}-{end_ts}:{resolution}"
    """

    kind: str
    symbol: Optional[str] = None
    time_range: Optional[TimeRange] = None
    resolution: Optional[Resolution] = None

    TOKENS = "tokens"
    HISTORY = "history"

    @classmethod
    def tokens(cls) -> "CacheKey":
        return cls(kind=cls.TOKENS)

    @classmethod
    def history(cls, symbol: str, time_range: TimeRange, resolution: Resolution) -> "CacheKey":
        return cls(kind=cls.HISTORY, symbol=symbol.upper(), time_range=time_range, resolution=resolution)

    def __str__(self) -> str:
        if self.kind == self.TOKENS:
            return self.TOKENS
        start = datetime_to_timestamp(self.time_range.start)
        end = datetime_to_timestamp(self.time_range.end)
        return f"{self.kind}:{self.symbol}:{start}-{end}:{self.resolution.value}"


@dataclass(frozen=True)
class NegativeResult:
    """Cached record of an upstream "unknown symbol" answer."""

    symbol: str
    message: str


@dataclass(frozen=True)
class CacheEntry:
    key: CacheKey
    value: Any
    fetched_at: datetime
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expires_at

    @property
    def is_negative(self) -> bool:
        return isinstance(self.value, NegativeResult)


class CacheLookup(NamedTuple):
    value: Any
    is_fresh: bool
    fetched_at: datetime
    is_negative: bool = False


# ============================================
# TTL Policy
# ============================================

class TTLPolicy:
    """
    Chooses the freshness window for an entry.

    - Token list: short TTL, prices move continuously
    - History whose last candle closed before the fetch: long TTL, immutable
    - History still covering the in-progress candle: short TTL
    - Negative results: their own short TTL
    """

    def __init__(
        self,
        token_list_ttl: float,
        history_open_ttl: float,
        history_closed_ttl: float,
        negative_ttl: float
    ):
        self.token_list_ttl = timedelta(seconds=token_list_ttl)
        self.history_open_ttl = timedelta(seconds=history_open_ttl)
        self.history_closed_ttl = timedelta(seconds=history_closed_ttl)
        self.negative_ttl = timedelta(seconds=negative_ttl)

    @classmethod
    def from_settings(cls, config) -> "TTLPolicy":
        return cls(
            token_list_ttl=config.token_list_ttl,
            history_open_ttl=config.history_open_ttl,
            history_closed_ttl=config.history_closed_ttl,
            negative_ttl=config.negative_ttl,
        )

    def ttl_for(self, key: CacheKey, value: Any, fetched_at: datetime) -> timedelta:
        if isinstance(value, NegativeResult):
            return self.negative_ttl

        if key.kind == CacheKey.TOKENS:
            return self.token_list_ttl

        last_candle_close = key.time_range.end + timedelta(seconds=key.resolution.seconds)
        if last_candle_close <= fetched_at:
            return self.history_closed_ttl
        return self.history_open_ttl


# ============================================
# Cache Store
# ============================================

def _consume_result(task: asyncio.Task) -> None:
    # Retrieve the outcome so an unobserved failure (all waiters cancelled) is not reported as lost
    if not task.cancelled():
        task.exception()


class MarketDataCache:
    """
    LRU + TTL cache with single-flight fetch de-duplication.

    Attributes:
        capacity: Maximum entries before LRU eviction
        hits: Reads that found a fresh entry
        misses: Reads that found nothing or an expired entry
        stale_hits: Expired entries served after a failed refresh
        evictions: Entries removed to respect capacity

    Example:
        >>> cache = MarketDataCache(policy, capacity=2)
        >>> cache.put(CacheKey.tokens(), [token])
        >>> cache.get(CacheKey.tokens()).is_fresh
        True
    """

    def __init__(
        self,
        ttl_policy: TTLPolicy,
        capacity: int = 512,
        clock: Callable[[], datetime] = current_utc_datetime
    ):
        if capacity < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {capacity}")

        self.ttl_policy = ttl_policy
        self.capacity = capacity
        self._clock = clock
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._inflight: Dict[CacheKey, asyncio.Task] = {}

        self.hits = 0
        self.misses = 0
        self.stale_hits = 0
        self.evictions = 0

    def now(self) -> datetime:
        return self._clock()

    # ============================================
    # Reads
    # ============================================

    def get(self, key: CacheKey) -> Optional[CacheLookup]:
        """
        Look up an entry without ever touching the network.

        Returns:
            CacheLookup(value, is_fresh, fetched_at, is_negative), or None if absent.
            Expired entries are returned with is_fresh=False.
        """
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            logger.debug(f"Cache miss: {key}")
            return None

        self._entries.move_to_end(key)
        fresh = entry.is_fresh(self._clock())

        if fresh:
            self.hits += 1
            logger.debug(f"Cache hit: {key}")
        else:
            self.misses += 1
            logger.debug(f"Cache expired: {key} (fetched {entry.fetched_at.isoformat()})")

        return CacheLookup(entry.value, fresh, entry.fetched_at, entry.is_negative)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def in_flight(self, key: CacheKey) -> bool:
        return key in self._inflight

    def record_stale_hit(self, key: CacheKey) -> None:
        self.stale_hits += 1
        logger.debug(f"Cache stale hit: {key}")

    # ============================================
    # Writes
    # ============================================

    def put(
        self,
        key: CacheKey,
        value: Any,
        fetched_at: Optional[datetime] = None,
        ttl: Optional[timedelta] = None
    ) -> CacheEntry:
        """
        Insert or replace an entry and reset its freshness deadline.

        Args:
            key: Cache key
            value: Normalized value (or NegativeResult)
            fetched_at: When the value was fetched; defaults to now, never later than now
            ttl: Explicit freshness window; defaults to the TTL policy for the key

        Returns:
            The stored CacheEntry
        """
        now = self._clock()
        fetched_at = min(fetched_at or now, now)
        if ttl is None:
            ttl = self.ttl_policy.ttl_for(key, value, fetched_at)

        entry = CacheEntry(key=key, value=value, fetched_at=fetched_at, expires_at=fetched_at + ttl)
        self._entries[key] = entry
        self._entries.move_to_end(key)
        logger.debug(f"Cache put: {key} (fresh until {entry.expires_at.isoformat()})")

        self._evict_over_capacity(keep=key)
        return entry

    def invalidate(self, key: CacheKey) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def _evict_over_capacity(self, keep: Optional[CacheKey] = None) -> None:
        while len(self._entries) > self.capacity:
            victim = next((k for k in self._entries if k != keep and k not in self._inflight), None)
            if victim is None:
                # Everything else is being refreshed; stay over capacity until a fetch finishes
                return
            del self._entries[victim]
            self.evictions += 1
            logger.debug(f"Cache evicted (LRU): {victim}")

    # ============================================
    # Single-Flight
    # ============================================

    async def with_single_flight(
        self,
        key: CacheKey,
        fetcher: Callable[[], Awaitable[Any]]
    ) -> CacheEntry:
        """
        Run ``fetcher`` at most once per key at a time and cache its result.

        If a fetch for ``key`` is already running, wait for it instead of
        calling ``fetcher``. Every waiter receives the same CacheEntry or the
        same exception. The registration is cleared when the fetch finishes,
        successfully or not, so the next request may try again.

        Args:
            key: Cache key
            fetcher: Zero-argument coroutine function returning the value to cache

        Returns:
            The CacheEntry populated by the fetch
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._fetch_and_store(key, fetcher), name=f"fetch:{key}")
            task.add_done_callback(_consume_result)
            self._inflight[key] = task
            logger.debug(f"Single-flight leader for {key}")
        else:
            logger.debug(f"Single-flight joined in-progress fetch for {key}")

        return await asyncio.shield(task)

    async def _fetch_and_store(self, key: CacheKey, fetcher: Callable[[], Awaitable[Any]]) -> CacheEntry:
        try:
            value = await fetcher()
            return self.put(key, value, self._clock())
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]
            self._evict_over_capacity()

    # ============================================
    # Introspection
    # ============================================

    def stats(self) -> dict:
        now = self._clock()
        fresh = sum(1 for entry in self._entries.values() if entry.is_fresh(now))
        return {
            "entries": len(self._entries),
            "fresh": fresh,
            "expired": len(self._entries) - fresh,
            "capacity": self.capacity,
            "in_flight": len(self._inflight),
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "evictions": self.evictions,
        }

    def __repr__(self) -> str:
        return f"<MarketDataCache(entries={len(self._entries)}, capacity={self.capacity})>"
