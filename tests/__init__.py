"""
Test Suite

Contains unit tests for the gateway.

Structure:
- tests/conftest.py: Shared fakes (providers, manual clock) and fixtures
- tests/unit/: Tests for individual components (schemas, clients, cache, gateway, API)

Uses pytest with pytest-asyncio for testing async functionality. No test
talks to a real upstream; provider clients are exercised by monkeypatching
their single HTTP entry point.
"""
