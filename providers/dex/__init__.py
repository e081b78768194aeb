"""DEX token/price API connector."""

from .api_client import DexAPIClient

__all__ = ["DexAPIClient"]
