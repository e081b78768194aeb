"""
Storage Package

Handles caching of normalized market data.

Current implementation:
- In-memory LRU/TTL cache with single-flight fetch de-duplication (cache.py)

The cache is an explicitly constructed component handed to the gateway, so
tests build an isolated instance per case.
"""

from storage.cache import CacheEntry, CacheKey, CacheLookup, MarketDataCache, NegativeResult, TTLPolicy

__all__ = ["CacheEntry", "CacheKey", "CacheLookup", "MarketDataCache", "NegativeResult", "TTLPolicy"]
