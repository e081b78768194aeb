"""
Shared test fixtures.

Fake providers stand in for the two upstream clients; they count calls,
can be told to fail, and can be held mid-fetch with an asyncio.Event so tests
control exactly when a shared fetch completes. ManualClock lets cache tests
move time forward without sleeping.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

import pytest

from core.gateway import MarketDataGateway
from core.provider_interface import PriceHistoryProvider, TokenListProvider
from core.schemas import PriceHistoryPoint, Resolution, TimeRange, TokenSummary
from storage.cache import MarketDataCache, TTLPolicy

T0 = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


def make_token(symbol: str = "TFUEL", price: str = "0.05") -> TokenSummary:
    return TokenSummary(
        symbol=symbol,
        name=f"{symbol} token",
        price=Decimal(price),
        change24h=Decimal("-1.2"),
        volume24h=Decimal("1000000"),
    )


def make_points(time_range: TimeRange, resolution: Resolution, count: int = 3) -> List[PriceHistoryPoint]:
    step = timedelta(seconds=resolution.seconds)
    return [
        PriceHistoryPoint(
            timestamp=time_range.start + step * i,
            open=Decimal("1.0"),
            high=Decimal("1.2"),
            low=Decimal("0.9"),
            close=Decimal("1.1"),
            volume=Decimal("500"),
        )
        for i in range(count)
        if time_range.start + step * i <= time_range.end
    ]


class FakeTokenProvider(TokenListProvider):
    """Token list provider returning a fixed snapshot or raising a queued error."""

    name = "fake-dex"

    def __init__(self, tokens: Optional[List[TokenSummary]] = None):
        self.tokens = tokens if tokens is not None else [make_token("TFUEL"), make_token("THETA", "1.10")]
        self.calls = 0
        self.errors: List[Exception] = []
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.healthy = True

    async def fetch_token_list(self) -> List[TokenSummary]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.tokens)

    async def health_check(self) -> bool:
        return self.healthy


class FakeHistoryProvider(PriceHistoryProvider):
    """History provider generating candles inside the requested range."""

    name = "fake-history"

    def __init__(self, count: int = 3):
        self.count = count
        self.calls = 0
        self.requests = []
        self.errors: List[Exception] = []
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.healthy = True

    async def fetch_price_history(
        self,
        symbol: str,
        time_range: TimeRange,
        resolution: Resolution
    ) -> List[PriceHistoryPoint]:
        self.calls += 1
        self.requests.append((symbol, time_range, resolution))
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        if self.fail_with is not None:
            raise self.fail_with
        return make_points(time_range, resolution, self.count)

    async def health_check(self) -> bool:
        return self.healthy


async def no_sleep(delay: float) -> None:
    no_sleep.delays.append(delay)


no_sleep.delays = []


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def ttl_policy():
    return TTLPolicy(token_list_ttl=60, history_open_ttl=60, history_closed_ttl=86_400, negative_ttl=300)


@pytest.fixture
def cache(ttl_policy, clock):
    return MarketDataCache(ttl_policy, capacity=16, clock=clock)


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def history_provider():
    return FakeHistoryProvider()


@pytest.fixture
def sleeps():
    no_sleep.delays = []
    return no_sleep.delays


@pytest.fixture
def gateway(token_provider, history_provider, cache, sleeps):
    return MarketDataGateway(
        token_provider=token_provider,
        history_provider=history_provider,
        cache=cache,
        retry_attempts=1,
        retry_backoff=0.5,
        history_max_points=2000,
        sleep=no_sleep,
    )
