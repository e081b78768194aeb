"""
Background Services Package

- token_refresher: Periodic token list refresh that keeps the cache warm
"""
