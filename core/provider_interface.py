"""
Provider Interface: Abstract Contracts for Upstream Market Data Providers

The gateway talks to two unrelated third-party APIs. Each is wrapped by a
client that implements one of the contracts below and returns the normalized
schemas from core.schemas, never raw provider payloads.

    TokenListProvider     → snapshot of every token the DEX currently lists
    PriceHistoryProvider  → OHLCV candles for a symbol, range and resolution

Error contract (see core.errors):
    - UpstreamUnavailable: network failure, timeout, non-2xx status
    - UpstreamMalformed: body is not JSON or lacks the expected shape
    - SymbolNotFound: provider reports the symbol does not exist (history only)

Providers perform exactly one HTTP request per call. Retry policy belongs to
the gateway so it is applied in one place and under single-flight.

Example:
    class MyDexClient(TokenListProvider):
        name = "mydex"

        async def fetch_token_list(self):
            raw = await self._get("/tokens")
            return [TokenSummary(...) for row in raw["tokens"]]
"""

from abc import ABC, abstractmethod
from typing import List
from core.schemas import TokenSummary, PriceHistoryPoint, TimeRange, Resolution


class UpstreamProvider(ABC):
    """
    Lifecycle shared by every upstream client.

    Class Attributes:
        name: Unique provider identifier (lowercase). Example: "dex", "history"

    Optional Methods (can be overridden):
        - initialize: Open HTTP sessions
        - shutdown: Close HTTP sessions
        - health_check: Verify the provider is reachable
    """

    name: str

    async def initialize(self) -> None:
        """Acquire resources (HTTP session). Default: nothing to do."""
        pass

    async def shutdown(self) -> None:
        """Release resources. Default: nothing to do."""
        pass

    async def health_check(self) -> bool:
        """Return True if the provider answered a cheap probe request."""
        return True

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{getattr(self, 'name', '?')}')>"


class TokenListProvider(UpstreamProvider):
    """Contract for the DEX token/price API."""

    @abstractmethod
    async def fetch_token_list(self) -> List[TokenSummary]:
        """
        Fetch a snapshot of all tokens the provider currently reports.

        Returns:
            List[TokenSummary]: One entry per symbol, symbols unique

        Raises:
            UpstreamUnavailable: Network error, timeout or non-2xx response
            UpstreamMalformed: Response could not be parsed into TokenSummary rows
        """
        pass


class PriceHistoryProvider(UpstreamProvider):
    """Contract for the historical price API."""

    @abstractmethod
    async def fetch_price_history(
        self,
        symbol: str,
        time_range: TimeRange,
        resolution: Resolution
    ) -> List[PriceHistoryPoint]:
        """
        Fetch OHLCV candles for a symbol.

        Args:
            symbol: Uppercase ticker (e.g., "TFUEL")
            time_range: Inclusive window, start < end
            resolution: Candle width (minute, hour, day)

        Returns:
            List[PriceHistoryPoint]: Ascending by timestamp, no duplicates, all
                inside time_range. Empty if the provider has no data.

        Raises:
            UpstreamUnavailable: Network error, timeout or non-2xx response
            UpstreamMalformed: Response could not be parsed
            SymbolNotFound: Provider reports the symbol does not exist
        """
        pass
