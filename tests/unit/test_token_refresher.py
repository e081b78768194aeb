"""
Unit Tests for the Token List Refresher

Run with:
    pytest tests/unit/test_token_refresher.py -v
"""

import asyncio

import pytest

from core.errors import UpstreamUnavailable
from services.token_refresher import TokenListRefresher
from storage.cache import CacheKey
from tests.conftest import make_token


class TestRefreshOnce:
    """Tests for a single refresh cycle"""

    @pytest.mark.asyncio
    async def test_refresh_populates_cache(self, gateway, token_provider):
        refresher = TokenListRefresher(gateway, interval_seconds=30)

        assert await refresher.refresh_once() is True
        assert refresher.refreshes == 1
        assert gateway.cache.get(CacheKey.tokens()).is_fresh is True

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_snapshot(self, gateway, token_provider):
        refresher = TokenListRefresher(gateway, interval_seconds=30)
        await refresher.refresh_once()
        token_provider.fail_with = UpstreamUnavailable("dex")

        assert await refresher.refresh_once() is False
        assert refresher.failures == 1
        assert gateway.cache.get(CacheKey.tokens()).value[0].symbol == "TFUEL"

    @pytest.mark.asyncio
    async def test_refresh_replaces_snapshot(self, gateway, token_provider):
        refresher = TokenListRefresher(gateway, interval_seconds=30)
        await refresher.refresh_once()
        token_provider.tokens = [make_token("TDROP")]

        await refresher.refresh_once()

        assert [t.symbol for t in gateway.cache.get(CacheKey.tokens()).value] == ["TDROP"]


class TestLifecycle:
    """Tests for start/stop"""

    @pytest.mark.asyncio
    async def test_start_runs_first_refresh_and_stop_cancels(self, gateway, token_provider):
        refresher = TokenListRefresher(gateway, interval_seconds=3600)

        await refresher.start()
        assert refresher.running is True
        for _ in range(5):
            await asyncio.sleep(0)

        assert token_provider.calls == 1

        await refresher.stop()
        assert refresher.running is False

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, gateway):
        refresher = TokenListRefresher(gateway, interval_seconds=3600)

        await refresher.start()
        await refresher.start()
        await refresher.stop()
        await refresher.stop()

        assert refresher.running is False
