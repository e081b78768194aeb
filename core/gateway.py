"""
Market Data Gateway: Cache-Fronted Aggregation of Upstream Providers

The gateway is the only component that decides how a request is answered:
from a fresh cache entry, from a single shared upstream fetch, or from a stale
entry when the upstream refresh fails.

Request flow:
    validate input  ─ invalid → InvalidRequest (cache and upstream untouched)
          │
    cache.get(key) ─ fresh → return (stale=False)
          │
    cache.with_single_flight(key, fetch with bounded retry)
          ├─ success                 → return (stale=False)
          ├─ SymbolNotFound          → cached as negative result, re-raised
          └─ UpstreamUnavailable /
             UpstreamMalformed       → stale entry? return it (stale=True)
                                       otherwise ServiceUnavailable

Design:
    Providers and the cache are injected, so tests can pair fake providers
    with an isolated cache and a manual clock. from_settings() wires the real
    aiohttp clients for the running service.

Example:
    gateway = MarketDataGateway.from_settings(settings)
    await gateway.initialize()

    result = await gateway.get_token_list()
    print(result.stale, len(result.value))
"""

import asyncio
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Tuple, Union

from core.errors import (
    InvalidRequest,
    ServiceUnavailable,
    SymbolNotFound,
    UpstreamError,
    UpstreamUnavailable,
)
from core.logging import get_logger
from core.provider_interface import PriceHistoryProvider, TokenListProvider
from core.schemas import PriceHistoryPoint, PriceHistorySeries, Resolution, TimeRange
from core.utils.time import parse_instant
from providers.dex import DexAPIClient
from providers.history import HistoryAPIClient
from storage.cache import CacheKey, MarketDataCache, NegativeResult, TTLPolicy

logger = get_logger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9]{1,20}$")

Instant = Union[str, datetime]


@dataclass(frozen=True)
class GatewayResult:
    """
    A value served by the gateway plus its provenance.

    Attributes:
        value: List[TokenSummary] or PriceHistorySeries
        stale: True when served from an expired entry after a failed refresh
        fetched_at: When the value was fetched upstream
    """

    value: Any
    stale: bool
    fetched_at: datetime


class MarketDataGateway:
    """
    Orchestrates providers and cache for the token list and price history.

    Attributes:
        token_provider: TokenListProvider (DEX API)
        history_provider: PriceHistoryProvider (historical price API)
        cache: MarketDataCache shared by all requests
        retry_attempts: Total attempts per fetch for UpstreamUnavailable (1 = no retry)
        retry_backoff: Attempt n waits retry_backoff * n seconds before attempt n + 1
        history_max_points: Largest series one request may span
    """

    def __init__(
        self,
        token_provider: TokenListProvider,
        history_provider: PriceHistoryProvider,
        cache: MarketDataCache,
        retry_attempts: int = 1,
        retry_backoff: float = 0.5,
        history_max_points: int = 2000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.token_provider = token_provider
        self.history_provider = history_provider
        self.cache = cache
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff = retry_backoff
        self.history_max_points = history_max_points
        self._sleep = sleep

    @classmethod
    def from_settings(cls, config) -> "MarketDataGateway":
        """
        Build a gateway wired to the real upstream clients.

        Args:
            config: core.config.Settings instance
        """
        cache = MarketDataCache(TTLPolicy.from_settings(config), capacity=config.cache_capacity)
        return cls(
            token_provider=DexAPIClient(config.dex_base_url, config.dex_timeout),
            history_provider=HistoryAPIClient(
                config.history_base_url,
                config.history_timeout,
                quote_currency=config.history_quote_currency,
                headers=config.get_history_headers(),
            ),
            cache=cache,
            retry_attempts=config.upstream_retry_attempts,
            retry_backoff=config.upstream_retry_backoff,
            history_max_points=config.history_max_points,
        )

    # ============================================
    # Lifecycle
    # ============================================

    @property
    def providers(self) -> Dict[str, Any]:
        return {"dex": self.token_provider, "history": self.history_provider}

    async def initialize(self) -> None:
        for name, provider in self.providers.items():
            await provider.initialize()
            logger.info(f"✓ {name} provider initialized")

    async def shutdown(self) -> None:
        for name, provider in self.providers.items():
            try:
                await provider.shutdown()
                logger.info(f"✓ {name} provider shut down")
            except Exception as e:
                logger.error(f"✗ Error shutting down {name} provider: {e}")

    async def health_check(self) -> Dict[str, bool]:
        health = {}
        for name, provider in self.providers.items():
            try:
                health[name] = await provider.health_check()
            except Exception as e:
                logger.error(f"Health check failed for {name}: {e}")
                health[name] = False
        return health

    # ============================================
    # Token List
    # ============================================

    async def get_token_list(self) -> GatewayResult:
        """
        Serve the token list snapshot.

        Returns:
            GatewayResult whose value is List[TokenSummary]

        Raises:
            ServiceUnavailable: Upstream failed and nothing is cached
        """
        return await self._serve(CacheKey.tokens(), self.token_provider.fetch_token_list)

    async def refresh_token_list(self) -> GatewayResult:
        """
        Refetch the token list regardless of freshness.

        Goes through single-flight like any read, so it never duplicates a
        fetch already in progress. Upstream errors propagate unchanged.
        """
        key = CacheKey.tokens()
        entry = await self.cache.with_single_flight(key, self._fetcher(self.token_provider.fetch_token_list))
        return GatewayResult(value=entry.value, stale=False, fetched_at=entry.fetched_at)

    # ============================================
    # Price History
    # ============================================

    async def get_price_history(
        self,
        symbol: str,
        start: Instant,
        end: Instant,
        resolution: Union[str, Resolution]
    ) -> GatewayResult:
        """
        Serve a price history series.

        Args:
            symbol: Ticker, 1-20 letters or digits (case-insensitive)
            start: Range start (datetime, or "2024-01-01", ISO-8601, epoch seconds)
            end: Range end, strictly after start
            resolution: "minute", "hour" or "day"

        Returns:
            GatewayResult whose value is PriceHistorySeries

        Raises:
            InvalidRequest: Malformed symbol, range or resolution
            SymbolNotFound: Provider does not know the symbol
            ServiceUnavailable: Upstream failed and nothing is cached
        """
        symbol, time_range, resolution = self.validate_history_request(symbol, start, end, resolution)
        key = CacheKey.history(symbol, time_range, resolution)

        async def fetch() -> PriceHistorySeries:
            points = await self.history_provider.fetch_price_history(symbol, time_range, resolution)
            return PriceHistorySeries(
                symbol=symbol,
                range=time_range,
                resolution=resolution,
                points=_order_points(points, time_range),
            )

        return await self._serve(key, fetch)

    def validate_history_request(
        self,
        symbol: str,
        start: Instant,
        end: Instant,
        resolution: Union[str, Resolution]
    ) -> Tuple[str, TimeRange, Resolution]:
        """
        Check a history request before it can reach the cache or upstream.

        Returns:
            (normalized symbol, TimeRange, Resolution)

        Raises:
            InvalidRequest: With a message naming the offending parameter
        """
        if not isinstance(symbol, str) or not SYMBOL_PATTERN.match(symbol):
            raise InvalidRequest("symbol must be 1-20 letters or digits")

        try:
            resolution = Resolution(resolution.lower() if isinstance(resolution, str) else resolution)
        except ValueError:
            allowed = ", ".join(r.value for r in Resolution)
            raise InvalidRequest(f"resolution must be one of: {allowed}")

        start_at = _parse_bound("start", start)
        end_at = _parse_bound("end", end)

        if start_at >= end_at:
            raise InvalidRequest("start must be before end")

        time_range = TimeRange(start=start_at, end=end_at)
        points = math.ceil(time_range.duration_seconds / resolution.seconds)
        if points > self.history_max_points:
            raise InvalidRequest(
                f"range spans {points} {resolution.value} points; "
                f"at most {self.history_max_points} are allowed"
            )

        return symbol.upper(), time_range, resolution

    # ============================================
    # Fresh / Single-Flight / Stale Policy
    # ============================================

    async def _serve(self, key: CacheKey, fetch: Callable[[], Awaitable[Any]]) -> GatewayResult:
        lookup = self.cache.get(key)
        if lookup is not None and lookup.is_fresh:
            return _unwrap(lookup.value, stale=False, fetched_at=lookup.fetched_at)

        try:
            entry = await self.cache.with_single_flight(key, self._fetcher(fetch))
        except UpstreamError as e:
            if lookup is not None and not lookup.is_negative:
                self.cache.record_stale_hit(key)
                age = self.cache.now() - lookup.fetched_at
                logger.warning(
                    f"Serving stale {key} (age {int(age.total_seconds())}s) after {e.code}: {e.message}"
                )
                return GatewayResult(value=lookup.value, stale=True, fetched_at=lookup.fetched_at)

            logger.error(f"No cached data for {key} after {e.code}: {e.message}")
            raise ServiceUnavailable() from e

        return _unwrap(entry.value, stale=False, fetched_at=entry.fetched_at)

    def _fetcher(self, fetch: Callable[[], Awaitable[Any]]) -> Callable[[], Awaitable[Any]]:
        """Wrap a provider call with bounded retry and negative-result capture."""

        async def run() -> Any:
            try:
                return await self._call_with_retry(fetch)
            except SymbolNotFound as e:
                return NegativeResult(symbol=e.symbol, message=e.message)

        return run

    async def _call_with_retry(self, fetch: Callable[[], Awaitable[Any]]) -> Any:
        attempt = 1
        while True:
            try:
                return await fetch()
            except UpstreamUnavailable as e:
                if attempt >= self.retry_attempts:
                    raise
                delay = self.retry_backoff * attempt
                logger.warning(
                    f"{e.message}. Retrying in {delay:.1f}s... "
                    f"(attempt {attempt}/{self.retry_attempts})"
                )
                await self._sleep(delay)
                attempt += 1

    def __repr__(self) -> str:
        return (
            f"<MarketDataGateway(tokens={self.token_provider!r}, "
            f"history={self.history_provider!r}, cache={self.cache!r})>"
        )


# ============================================
# Helpers
# ============================================

def _unwrap(value: Any, stale: bool, fetched_at: datetime) -> GatewayResult:
    if isinstance(value, NegativeResult):
        raise SymbolNotFound(value.symbol, value.message)
    return GatewayResult(value=value, stale=stale, fetched_at=fetched_at)


def _parse_bound(name: str, value: Instant) -> datetime:
    if isinstance(value, (datetime, int)):
        value = value.isoformat() if isinstance(value, datetime) else str(value)
    try:
        return parse_instant(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidRequest(f"{name} must be a date, ISO-8601 datetime or epoch seconds")


def _order_points(points: List[PriceHistoryPoint], time_range: TimeRange) -> List[PriceHistoryPoint]:
    """Ascending, first occurrence per timestamp, inside the requested range."""
    unique: Dict[datetime, PriceHistoryPoint] = {}
    for point in points:
        if time_range.contains(point.timestamp):
            unique.setdefault(point.timestamp, point)
    return [unique[ts] for ts in sorted(unique)]


__all__ = ["GatewayResult", "MarketDataGateway", "SYMBOL_PATTERN"]
