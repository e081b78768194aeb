"""
Core Package

Contains the provider-agnostic core logic including:
- Provider interfaces: Abstract contracts for the token list and price history upstreams
- MarketDataGateway: Cache-fronted coordinator that serves every read
- Errors: The error taxonomy reported to callers
- Schemas: Pydantic models for normalized data structures (tokens, price history)

Upstream clients implement the interfaces, so the gateway never depends on a
specific provider's wire format.
"""
