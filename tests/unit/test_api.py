"""
Unit Tests for the HTTP API

These tests drive the FastAPI app in-process through httpx's ASGI transport,
with fake providers behind a real gateway and cache. They verify that:
- /api/tokens and /api/history return the documented bodies
- Staleness is visible in the response
- Errors come back as {code, message} with the right status
- Provider detail never leaks into error messages

Run with:
    pytest tests/unit/test_api.py -v
"""

import httpx
import pytest
import pytest_asyncio

from app.main import create_app
from core.errors import SymbolNotFound, UpstreamUnavailable


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def app(gateway):
    return create_app(gateway=gateway)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


HISTORY_PARAMS = {"symbol": "TFUEL", "start": "2024-01-01", "end": "2024-01-31", "resolution": "day"}


# ============================================
# System Endpoints
# ============================================

class TestSystemEndpoints:
    """Tests for /, /health and /api/cache/stats"""

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["providers"] == ["dex", "history"]

    @pytest.mark.asyncio
    async def test_health_healthy(self, client):
        body = (await client.get("/health")).json()
        assert body == {"status": "healthy", "providers": {"dex": True, "history": True}}

    @pytest.mark.asyncio
    async def test_health_degraded(self, client, token_provider):
        token_provider.healthy = False
        assert (await client.get("/health")).json()["status"] == "degraded"

    @pytest.mark.asyncio
    async def test_cache_stats(self, client):
        await client.get("/api/tokens")
        stats = (await client.get("/api/cache/stats")).json()

        assert stats["entries"] == 1
        assert stats["misses"] == 1


# ============================================
# Token List
# ============================================

class TestTokensEndpoint:
    """Tests for GET /api/tokens"""

    @pytest.mark.asyncio
    async def test_returns_token_list(self, client):
        response = await client.get("/api/tokens")

        assert response.status_code == 200
        body = response.json()
        assert body["stale"] is False
        assert body["fetched_at"] == "2024-06-01T12:00:00Z"
        assert body["tokens"][0] == {
            "symbol": "TFUEL",
            "name": "TFUEL token",
            "price": 0.05,
            "change24h": -1.2,
            "volume24h": 1000000.0,
        }

    @pytest.mark.asyncio
    async def test_stale_flag_on_failed_refresh(self, client, token_provider, clock):
        """Scenario: cached list expired, upstream down → stale data with stale=true"""
        await client.get("/api/tokens")
        clock.advance(120)
        token_provider.fail_with = UpstreamUnavailable("dex", "dex provider timed out")

        response = await client.get("/api/tokens")

        assert response.status_code == 200
        assert response.json()["stale"] is True
        assert response.json()["fetched_at"] == "2024-06-01T12:00:00Z"

    @pytest.mark.asyncio
    async def test_service_unavailable_when_nothing_cached(self, client, token_provider):
        token_provider.fail_with = UpstreamUnavailable("dex", "dex provider answered HTTP 502")

        response = await client.get("/api/tokens")

        assert response.status_code == 503
        assert response.json() == {
            "code": "ServiceUnavailable",
            "message": "Market data is temporarily unavailable",
        }


# ============================================
# Price History
# ============================================

class TestHistoryEndpoint:
    """Tests for GET /api/history"""

    @pytest.mark.asyncio
    async def test_returns_series(self, client):
        response = await client.get("/api/history", params=HISTORY_PARAMS)

        assert response.status_code == 200
        body = response.json()
        assert body["symbol"] == "TFUEL"
        assert body["range"] == {"start": "2024-01-01T00:00:00Z", "end": "2024-01-31T00:00:00Z"}
        assert body["resolution"] == "day"
        assert body["no_data"] is False
        assert body["stale"] is False
        assert len(body["points"]) == 3
        assert body["points"][0] == {
            "timestamp": "2024-01-01T00:00:00Z",
            "open": 1.0,
            "high": 1.2,
            "low": 0.9,
            "close": 1.1,
            "volume": 500.0,
        }

    @pytest.mark.asyncio
    async def test_empty_series(self, client, history_provider):
        history_provider.count = 0

        body = (await client.get("/api/history", params=HISTORY_PARAMS)).json()

        assert body["points"] == []
        assert body["no_data"] is True

    @pytest.mark.asyncio
    async def test_invalid_range(self, client, history_provider):
        """Scenario: start after end → 400 without any upstream call"""
        params = dict(HISTORY_PARAMS, start="2024-01-01", end="2023-01-01")

        response = await client.get("/api/history", params=params)

        assert response.status_code == 400
        assert response.json()["code"] == "InvalidRequest"
        assert history_provider.calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name, value",
        [
            ("start", "0001-01-01T00:00:00+05:00"),
            ("end", "9999-12-31T23:00:00-05:00"),
            ("start", "9" * 400),
        ],
    )
    async def test_out_of_range_instant_is_invalid(self, client, history_provider, name, value):
        params = dict(HISTORY_PARAMS, **{name: value})

        response = await client.get("/api/history", params=params)

        assert response.status_code == 400
        assert response.json()["code"] == "InvalidRequest"
        assert name in response.json()["message"]
        assert history_provider.calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["symbol", "start", "end", "resolution"])
    async def test_missing_parameter_is_invalid(self, client, missing):
        params = {k: v for k, v in HISTORY_PARAMS.items() if k != missing}

        response = await client.get("/api/history", params=params)

        assert response.status_code == 400
        assert response.json()["code"] == "InvalidRequest"
        assert missing in response.json()["message"]

    @pytest.mark.asyncio
    async def test_unknown_symbol(self, client, history_provider):
        """Scenario: provider does not know the symbol → 404, cached"""
        history_provider.fail_with = SymbolNotFound("NOPE")
        params = dict(HISTORY_PARAMS, symbol="NOPE")

        first = await client.get("/api/history", params=params)
        second = await client.get("/api/history", params=params)

        assert first.status_code == 404
        assert first.json()["code"] == "SymbolNotFound"
        assert second.status_code == 404
        assert history_provider.calls == 1

    @pytest.mark.asyncio
    async def test_upstream_detail_not_leaked(self, client, history_provider):
        history_provider.fail_with = UpstreamUnavailable("history", "history provider answered HTTP 500")

        response = await client.get("/api/history", params=HISTORY_PARAMS)

        assert response.status_code == 503
        assert response.json()["code"] == "ServiceUnavailable"
        assert "HTTP 500" not in response.json()["message"]


# ============================================
# Error Handling
# ============================================

class TestErrorHandling:
    """Tests for error bodies outside the gateway taxonomy"""

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/api/nothing")

        assert response.status_code == 404
        assert response.json()["code"] == "NotFound"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, gateway, token_provider):
        token_provider.fail_with = RuntimeError("boom")
        transport = httpx.ASGITransport(app=create_app(gateway=gateway), raise_app_exceptions=False)

        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            response = await http.get("/api/tokens")

        assert response.status_code == 500
        assert response.json() == {"code": "InternalError", "message": "Internal error"}
