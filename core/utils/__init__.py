"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Timestamp conversion and query-string instant parsing
"""

from core.utils.time import to_utc_datetime, parse_instant, current_utc_datetime

__all__ = ["to_utc_datetime", "parse_instant", "current_utc_datetime"]
