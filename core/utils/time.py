"""
Time Utilities

The two upstream providers and the HTTP clients of this gateway all express
instants differently:
- Historical price API: seconds since epoch (e.g., 1704110400)
- Some feeds: milliseconds since epoch (e.g., 1704110400000)
- Query strings: "2024-01-01", "2024-01-01T12:00:00Z" or "1704110400"

Everything is normalized into timezone-aware UTC datetimes with second
precision before it reaches the schemas or the cache keys.
"""

from datetime import datetime, timezone, date
from typing import Union


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12 (1 trillion): Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    try:
        # Seconds are ~1.7e9 today, milliseconds ~1.7e12
        if timestamp > 1e12:
            timestamp = timestamp / 1000.0
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Args:
        dt: Datetime object (naive datetimes are assumed to be UTC)
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Unix timestamp in seconds or milliseconds

    Examples:
        >>> dt = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        >>> datetime_to_timestamp(dt)
        1704110400
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    timestamp = int(dt.timestamp())

    if milliseconds:
        timestamp *= 1000

    return timestamp


def parse_instant(value: str) -> datetime:
    """
    Parse a query-string instant into a UTC datetime (second precision).

    Accepted forms:
        - Calendar date:        "2024-01-01"  (midnight UTC)
        - ISO-8601 datetime:    "2024-01-01T12:00:00Z", "2024-01-01T14:00:00+02:00"
        - Epoch seconds/millis: "1704110400", "1704110400000"

    Args:
        value: Raw string from the request

    Returns:
        datetime: Timezone-aware UTC datetime without microseconds

    Raises:
        ValueError: If the string matches none of the accepted forms

    Examples:
        >>> parse_instant("2024-01-01")
        datetime.datetime(2024, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    raw = (value or "").strip()
    if not raw:
        raise ValueError("Empty timestamp")

    if raw.isdigit():
        return to_utc_datetime(int(raw)).replace(microsecond=0)

    try:
        day = date.fromisoformat(raw)
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    except ValueError:
        pass

    # fromisoformat() before 3.11 rejects the "Z" suffix
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValueError(f"Unrecognized timestamp: '{value}'")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    try:
        return parsed.astimezone(timezone.utc).replace(microsecond=0)
    except OverflowError:
        raise ValueError(f"Timestamp out of range: '{value}'")


def current_utc_datetime() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)
