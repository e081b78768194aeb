"""
FastAPI Application - Token Market Data Gateway

Serves token prices and price history for the analytics frontend from a
shared cache in front of two upstream providers.

Upstream Providers:
    - DEX token API (token list with current price, 24h change, 24h volume)
    - Historical price API (OHLCV candles by minute, hour or day)

Features:
    - Cached token list snapshot
    - Cached price history per (symbol, range, resolution)
    - One upstream fetch per key no matter how many concurrent requests
    - Stale data served (and flagged) when an upstream refresh fails

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings, validate_configuration
from core.errors import GatewayError, InvalidRequest, ServiceUnavailable, UpstreamError
from core.gateway import MarketDataGateway
from core.logging import logger
from core.schemas import ErrorResponse, PriceHistoryResponse, TokenListResponse
from services.token_refresher import TokenListRefresher

API_TITLE = "Token Market Data Gateway"
API_VERSION = "1.0.0"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request parameters"},
    404: {"model": ErrorResponse, "description": "Symbol not known to the price provider"},
    503: {"model": ErrorResponse, "description": "Upstream unavailable and nothing cached"},
}


# ============================================
# Error Handlers
# ============================================

def _error_response(error: GatewayError) -> JSONResponse:
    # Upstream failures that reach the edge are reported without provider detail
    if isinstance(error, UpstreamError):
        error = ServiceUnavailable()
    return JSONResponse(status_code=error.http_status, content=error.to_dict())


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    return _error_response(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
        message = f"{field}: {first.get('msg', 'invalid value')}"
    else:
        message = None
    return _error_response(InvalidRequest(message))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "NotFound" if exc.status_code == 404 else "HTTPError"
    return JSONResponse(status_code=exc.status_code, content={"code": code, "message": str(exc.detail)})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"code": "InternalError", "message": "Internal error"})


# ============================================
# Application Factory
# ============================================

def create_app(
    gateway: Optional[MarketDataGateway] = None,
    refresher: Optional[TokenListRefresher] = None
) -> FastAPI:
    """
    Build the FastAPI application around a gateway.

    Args:
        gateway: Gateway to serve from (defaults to one wired from settings)
        refresher: Background token list refresher (defaults to one when
            TOKEN_REFRESH_INTERVAL > 0)
    """
    if gateway is None:
        gateway = MarketDataGateway.from_settings(settings)
    if refresher is None and settings.refresh_enabled:
        refresher = TokenListRefresher(gateway, settings.token_refresh_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown."""
        # Startup
        logger.info("=== Application Starting ===")
        try:
            validate_configuration()
            await gateway.initialize()
            if refresher is not None:
                await refresher.start()
            logger.info("=== Started Successfully ===")
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise

        yield

        # Shutdown
        logger.info("=== Shutting Down ===")
        if refresher is not None:
            try:
                await refresher.stop()
            except Exception as e:
                logger.error(f"Error stopping TokenListRefresher: {e}")
        await gateway.shutdown()
        logger.info("=== Shutdown Complete ===")

    app = FastAPI(
        title=API_TITLE,
        description=(
            "Cached market data for the token analytics dashboard.\n\n"
            "## REST Endpoints\n"
            "- `GET /api/tokens` - Token list with price, 24h change and 24h volume\n"
            "- `GET /api/history` - Price history for one symbol over a range\n"
            "- `GET /api/cache/stats` - Cache statistics\n"
            "- `GET /health` - Upstream health check\n\n"
            "Responses carry `stale: true` when served from an expired cache entry "
            "because the upstream refresh failed.\n\n"
            "Errors are JSON objects `{code, message}`."
        ),
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.gateway = gateway
    app.state.refresher = refresher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"]
    )

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    _register_routes(app, gateway)
    return app


def _register_routes(app: FastAPI, gateway: MarketDataGateway) -> None:

    # ============================================
    # System Endpoints
    # ============================================

    @app.get("/", tags=["System"])
    async def root():
        """API information."""
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "status": "operational",
            "docs": "/docs",
            "providers": list(gateway.providers),
        }

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check - tests connectivity to both upstream providers."""
        health = await gateway.health_check()
        return {
            "status": "healthy" if all(health.values()) else "degraded",
            "providers": health,
        }

    @app.get("/api/cache/stats", tags=["System"])
    async def cache_stats():
        """Entry counts, hit/miss counters and evictions for the shared cache."""
        return gateway.cache.stats()

    # ============================================
    # Market Data Endpoints
    # ============================================

    @app.get(
        "/api/tokens",
        response_model=TokenListResponse,
        responses={503: ERROR_RESPONSES[503]},
        tags=["Market Data"],
    )
    async def get_tokens():
        """
        Get the token list snapshot.

        Example:
            GET /api/tokens
        """
        result = await gateway.get_token_list()
        return TokenListResponse(tokens=result.value, stale=result.stale, fetched_at=result.fetched_at)

    @app.get(
        "/api/history",
        response_model=PriceHistoryResponse,
        responses=ERROR_RESPONSES,
        tags=["Market Data"],
    )
    async def get_history(
        symbol: Optional[str] = Query(default=None, description="Token symbol (e.g., TFUEL)"),
        start: Optional[str] = Query(default=None, description="Range start: date, ISO-8601 or epoch seconds"),
        end: Optional[str] = Query(default=None, description="Range end: date, ISO-8601 or epoch seconds"),
        resolution: Optional[str] = Query(default=None, description="minute, hour or day"),
    ):
        """
        Get price history for a symbol.

        Examples:
            GET /api/history?symbol=TFUEL&start=2024-01-01&end=2024-01-31&resolution=day
            GET /api/history?symbol=THETA&start=1704067200&end=1704153600&resolution=hour
        """
        result = await gateway.get_price_history(symbol, start, end, resolution)
        series = result.value
        return PriceHistoryResponse(
            symbol=series.symbol,
            range=series.range,
            resolution=series.resolution,
            points=series.points,
            stale=result.stale,
            fetched_at=result.fetched_at,
        )


# ============================================
# ASGI Entry Point
# ============================================

app = create_app()
