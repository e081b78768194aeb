"""
DEX Token API Client

Async client for the decentralized exchange's public token endpoint, which
reports every listed token with its current USD price, 24h change and 24h
volume.

Endpoint Used:
    GET {DEX_BASE_URL}/tokens

Response Format:
    {
      "tokens": [
        {
          "address": "0x4dc08b15ea0e10b96c41aec22fab934ba15c983e",
          "symbol": "TFUEL",
          "name": "Theta Fuel",
          "derivedUSD": "0.05",
          "priceChange24h": "-1.2",
          "tradeVolume24hUSD": "1000000"
        }
      ]
    }

Usage:
    async with DexAPIClient(base_url, timeout=5.0) as client:
        tokens = await client.fetch_token_list()
"""

from typing import Any, Dict, List, Set

from core.errors import UpstreamMalformed
from core.provider_interface import TokenListProvider
from core.schemas import TokenSummary
from providers.http import HTTPProviderClient, to_decimal


class DexAPIClient(HTTPProviderClient, TokenListProvider):
    """
    Token list provider backed by the DEX REST API.

    Rows that cannot be normalized are skipped with a warning, so one bad
    listing does not take the whole snapshot down. A body without a token
    list, or a list in which no row is usable, is reported as malformed.
    When a symbol appears more than once, the first row wins.

    Example:
        >>> async with DexAPIClient("https://api.thetaswap.io/v1", 5.0) as client:
        ...     tokens = await client.fetch_token_list()
        ...     print(tokens[0].symbol, tokens[0].price)
        TFUEL 0.05
    """

    name = "dex"
    health_path = "/tokens"
    TOKENS_PATH = "/tokens"

    async def fetch_token_list(self) -> List[TokenSummary]:
        self.logger.info("Fetching token list")

        data = await self._get(self.TOKENS_PATH)

        rows = data.get("tokens") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            self.logger.error(f"Token list response has no 'tokens' array: {type(data).__name__}")
            raise UpstreamMalformed(self.name, "dex provider returned no token list")

        tokens: List[TokenSummary] = []
        seen: Set[str] = set()
        skipped = 0

        for row in rows:
            try:
                token = self._normalize_token(row)
            except (KeyError, TypeError, ValueError) as e:
                skipped += 1
                self.logger.warning(f"Skipping unparseable token row {row!r}: {e}")
                continue

            if token.symbol in seen:
                self.logger.warning(f"Duplicate symbol {token.symbol} in token list; keeping first")
                continue

            seen.add(token.symbol)
            tokens.append(token)

        if rows and not tokens:
            raise UpstreamMalformed(self.name, "dex provider returned no usable tokens")

        self.logger.info(f"Fetched {len(tokens)} tokens ({skipped} skipped)")
        return tokens

    @staticmethod
    def _normalize_token(row: Dict[str, Any]) -> TokenSummary:
        """Map one provider row onto TokenSummary. Missing 24h stats count as zero."""
        symbol = row["symbol"]
        return TokenSummary(
            symbol=symbol,
            name=row.get("name") or symbol,
            price=to_decimal(row["derivedUSD"]),
            change24h=to_decimal(row.get("priceChange24h", 0)),
            volume24h=to_decimal(row.get("tradeVolume24hUSD", 0)),
        )
