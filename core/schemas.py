"""
Normalized Data Schemas

This module defines Pydantic models for all market data the gateway serves.

Key Principle:
    Both upstream providers (the DEX token API and the historical price API)
    speak their own dialects. Their responses are normalized into these
    schemas inside the provider clients, so nothing past the client boundary
    ever sees a provider-specific field name.

Models:
    - TokenSummary: One row of the token list snapshot
    - PriceHistoryPoint: One OHLCV candle
    - TimeRange / Resolution: Shape of a history request
    - PriceHistorySeries: Ordered candles for one symbol/range/resolution
    - TokenListResponse / PriceHistoryResponse: Wire envelopes with staleness
    - ErrorResponse: Structured error body

Precision:
    Prices and volumes are Decimal end to end. Upstream JSON is parsed with
    Decimal floats, so provider numbers are kept exactly. On the wire they are
    emitted as JSON numbers (the shortest float repr of the Decimal).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List
from pydantic import BaseModel, Field, field_validator, computed_field, ConfigDict, PlainSerializer


# Decimal in memory, JSON number on the wire
DecimalNumber = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]


# ============================================
# Token List Schema
# ============================================

class TokenSummary(BaseModel):
    """
    One token in a token list snapshot.

    A snapshot is produced per refresh and replaces the previous one entirely;
    individual rows are never patched in place.

    Attributes:
        symbol: Ticker in uppercase, unique within a snapshot (e.g., "TFUEL")
        name: Display name (e.g., "Theta Fuel")
        price: Current price in the quote currency
        change24h: 24h price change in percent (signed)
        volume24h: 24h trading volume in the quote currency

    Example:
        >>> TokenSummary(symbol="tfuel", name="Theta Fuel", price=Decimal("0.05"),
        ...              change24h=Decimal("-1.2"), volume24h=Decimal("1000000"))
        TokenSummary(symbol='TFUEL', ...)
    """

    symbol: str = Field(..., min_length=1, examples=["TFUEL", "THETA", "TDROP"])
    name: str = Field(..., description="Display name")
    price: DecimalNumber = Field(..., ge=0, description="Current price")
    change24h: DecimalNumber = Field(..., description="24h change in percent")
    volume24h: DecimalNumber = Field(..., ge=0, description="24h volume")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "symbol": "TFUEL",
                "name": "Theta Fuel",
                "price": 0.05,
                "change24h": -1.2,
                "volume24h": 1000000,
            }
        }
    )

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.strip().upper()


# ============================================
# Price History Schemas
# ============================================

class Resolution(str, Enum):
    """Candle width of a price history series."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    @property
    def seconds(self) -> int:
        return _RESOLUTION_SECONDS[self]


_RESOLUTION_SECONDS = {
    Resolution.MINUTE: 60,
    Resolution.HOUR: 3600,
    Resolution.DAY: 86_400,
}


class TimeRange(BaseModel):
    """Inclusive [start, end] window of a history request, UTC, second precision."""

    start: datetime
    end: datetime

    model_config = ConfigDict(frozen=True)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    @property
    def duration_seconds(self) -> int:
        return int((self.end - self.start).total_seconds())


class PriceHistoryPoint(BaseModel):
    """
    One OHLCV candle.

    Attributes:
        timestamp: Candle open time in UTC (second precision)
        open, high, low, close: Prices in the quote currency
        volume: Traded volume in the quote currency
    """

    timestamp: datetime
    open: DecimalNumber = Field(..., ge=0)
    high: DecimalNumber = Field(..., ge=0)
    low: DecimalNumber = Field(..., ge=0)
    close: DecimalNumber = Field(..., ge=0)
    volume: DecimalNumber = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)

    @field_validator("timestamp")
    @classmethod
    def truncate_to_seconds(cls, v: datetime) -> datetime:
        return v.replace(microsecond=0)


class PriceHistorySeries(BaseModel):
    """
    Price history for one symbol over one range at one resolution.

    Points are ascending by timestamp, free of duplicates and all fall inside
    ``range``. An empty series means the provider had no data for the window;
    it is flagged through ``no_data`` rather than treated as an error.
    """

    symbol: str
    range: TimeRange
    resolution: Resolution
    points: List[PriceHistoryPoint] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def no_data(self) -> bool:
        return not self.points


# ============================================
# Wire Envelopes
# ============================================

class TokenListResponse(BaseModel):
    """Body of GET /api/tokens."""

    tokens: List[TokenSummary]
    stale: bool = Field(..., description="True when served from an expired cache entry")
    fetched_at: datetime = Field(..., description="When the data was fetched upstream")


class PriceHistoryResponse(PriceHistorySeries):
    """Body of GET /api/history."""

    stale: bool = Field(..., description="True when served from an expired cache entry")
    fetched_at: datetime = Field(..., description="When the data was fetched upstream")


class ErrorResponse(BaseModel):
    """Structured error body returned for every non-2xx response."""

    code: str = Field(..., examples=["InvalidRequest", "SymbolNotFound", "ServiceUnavailable"])
    message: str
