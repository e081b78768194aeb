"""
Historical Price API Client

Async client for a CryptoCompare-style historical OHLCV API.

API Documentation:
    https://min-api.cryptocompare.com/documentation

Endpoints Used:
    GET /data/v2/histominute  - 1 minute candles
    GET /data/v2/histohour    - 1 hour candles
    GET /data/v2/histoday     - 1 day candles

    Query: fsym=<symbol>&tsym=<quote>&toTs=<end, epoch s>&limit=<candles - 1>

Response Format:
    {
      "Response": "Success",
      "Data": {
        "TimeFrom": 1704067200,
        "TimeTo": 1704153600,
        "Data": [
          {
            "time": 1704067200,
            "open": 0.0771, "high": 0.0802, "low": 0.0765, "close": 0.0794,
            "volumefrom": 1203344.1, "volumeto": 95011.22
          }
        ]
      }
    }

    Errors come back as HTTP 200 with:
    {"Response": "Error", "Message": "There is no data for the symbol XYZ ."}

Quirks:
    - The provider returns limit+1 candles ending at toTs
    - Candles before a coin was listed are zero-filled placeholders
"""

import math
from typing import Any, Dict, List, Optional

from core.errors import SymbolNotFound, UpstreamMalformed, UpstreamUnavailable
from core.provider_interface import PriceHistoryProvider
from core.schemas import PriceHistoryPoint, Resolution, TimeRange
from core.utils.time import datetime_to_timestamp, to_utc_datetime
from providers.http import HTTPProviderClient, to_decimal

# Provider messages that mean "this symbol does not exist"
_UNKNOWN_SYMBOL_MARKERS = ("no data for the symbol", "does not exist", "fsym param is invalid")
_RATE_LIMIT_MARKERS = ("rate limit",)


class HistoryAPIClient(HTTPProviderClient, PriceHistoryProvider):
    """
    Price history provider backed by the historical price API.

    Attributes:
        quote_currency: Currency prices are quoted in (tsym), e.g. "USD"

    Example:
        >>> async with HistoryAPIClient(base_url, 5.0, quote_currency="USD") as client:
        ...     points = await client.fetch_price_history("TFUEL", time_range, Resolution.DAY)
    """

    name = "history"
    health_path = "/stats/rate/limit"
    MAX_LIMIT = 2000

    ENDPOINTS = {
        Resolution.MINUTE: "/data/v2/histominute",
        Resolution.HOUR: "/data/v2/histohour",
        Resolution.DAY: "/data/v2/histoday",
    }

    def __init__(
        self,
        base_url: str,
        timeout: float,
        quote_currency: str = "USD",
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(base_url, timeout, headers)
        self.quote_currency = quote_currency.upper()

    async def fetch_price_history(
        self,
        symbol: str,
        time_range: TimeRange,
        resolution: Resolution
    ) -> List[PriceHistoryPoint]:
        symbol = symbol.upper()
        candles = math.ceil(time_range.duration_seconds / resolution.seconds)
        params = {
            "fsym": symbol,
            "tsym": self.quote_currency,
            "toTs": datetime_to_timestamp(time_range.end),
            "limit": max(1, min(candles, self.MAX_LIMIT)),
        }

        self.logger.info(
            f"Fetching price history: {symbol} {resolution.value} "
            f"{time_range.start.isoformat()} → {time_range.end.isoformat()}"
        )

        data = await self._get(self.ENDPOINTS[resolution], params)
        self._raise_for_provider_error(symbol, data)

        try:
            rows = data["Data"]["Data"]
        except (KeyError, TypeError):
            raise UpstreamMalformed(self.name, "history provider returned no candle data")
        if not isinstance(rows, list):
            raise UpstreamMalformed(self.name, "history provider returned no candle data")

        by_timestamp: Dict[Any, PriceHistoryPoint] = {}
        for row in rows:
            try:
                point = self._normalize_point(row)
            except (KeyError, TypeError, ValueError) as e:
                self.logger.error(f"Unparseable candle for {symbol}: {row!r} ({e})")
                raise UpstreamMalformed(self.name, "history provider returned an invalid candle")

            if not time_range.contains(point.timestamp) or self._is_placeholder(point):
                continue
            by_timestamp.setdefault(point.timestamp, point)

        points = [by_timestamp[ts] for ts in sorted(by_timestamp)]
        self.logger.info(f"Fetched {len(points)} {resolution.value} candles for {symbol}")
        return points

    # ============================================
    # Normalization Helpers
    # ============================================

    def _raise_for_provider_error(self, symbol: str, data: Any) -> None:
        if not isinstance(data, dict):
            raise UpstreamMalformed(self.name, "history provider returned an unexpected body")

        if data.get("Response") != "Error":
            return

        message = str(data.get("Message", ""))
        lowered = message.lower()
        self.logger.warning(f"History provider error for {symbol}: {message}")

        if any(marker in lowered for marker in _UNKNOWN_SYMBOL_MARKERS):
            raise SymbolNotFound(symbol)
        if any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
            raise UpstreamUnavailable(self.name, "history provider rate limit reached")
        raise UpstreamUnavailable(self.name, "history provider reported an error")

    @staticmethod
    def _normalize_point(row: Dict[str, Any]) -> PriceHistoryPoint:
        return PriceHistoryPoint(
            timestamp=to_utc_datetime(int(row["time"])),
            open=to_decimal(row["open"]),
            high=to_decimal(row["high"]),
            low=to_decimal(row["low"]),
            close=to_decimal(row["close"]),
            volume=to_decimal(row.get("volumeto", 0)),
        )

    @staticmethod
    def _is_placeholder(point: PriceHistoryPoint) -> bool:
        return not any((point.open, point.high, point.low, point.close))
