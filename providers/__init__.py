"""
Upstream Provider Package

One subpackage per external market data provider:
- dex/: DEX token/price API (token list snapshots)
- history/: Historical price API (OHLCV series)

Each client implements a contract from core.provider_interface and returns
the normalized schemas from core.schemas. Adding a provider means adding a
subpackage; the gateway only depends on the contracts.
"""
