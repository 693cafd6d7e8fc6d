"""
Datetime utility functions for handling timezone-aware datetimes.

Attempt timing works on a single canonical representation: integer epoch
seconds (UTC). Values coming from the database, request payloads or older
serialized documents are collapsed to that representation here, at the
boundary, so nothing deeper in the code branches on format.
"""
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

# Epoch values above this are taken to be milliseconds (10^11 seconds is
# roughly the year 5138, 10^11 milliseconds is March 1973).
_MILLISECOND_THRESHOLD = 10**11

TimestampLike = Union[datetime, int, float, str, Mapping[str, Any]]


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    This utility provides a consistent, mockable way to get the current UTC time
    throughout the codebase. Using this function instead of datetime.now(timezone.utc)
    directly enables easier testing through mocking.

    Returns:
        A timezone-aware datetime object representing the current time in UTC.

    Example:
        >>> from app.core.datetime_utils import utc_now
        >>> current_time = utc_now()
        >>> current_time.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def epoch_now() -> int:
    """Return the current server time as integer epoch seconds."""
    return to_epoch_seconds(utc_now())


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Args:
        dt: The datetime to ensure is timezone-aware

    Returns:
        A timezone-aware datetime object in UTC

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_epoch_seconds(dt: datetime) -> int:
    """
    Convert a datetime to integer epoch seconds.

    Naive datetimes are interpreted as UTC (see ensure_timezone_aware).
    Sub-second precision is truncated.
    """
    return int(ensure_timezone_aware(dt).timestamp())


def from_epoch_seconds(seconds: Optional[int]) -> Optional[datetime]:
    """Convert epoch seconds to an aware UTC datetime, passing None through."""
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def normalize_timestamp(value: TimestampLike) -> int:
    """
    Collapse any supported timestamp representation to epoch seconds.

    Accepted inputs:
    - datetime (naive values are treated as UTC)
    - int/float epoch seconds, or epoch milliseconds when above 10^11
    - ISO-8601 strings, including a trailing "Z"
    - numeric strings (same rules as numbers)
    - mappings with "seconds" (and optional "nanoseconds"), the shape of
      serialized document-store timestamps

    Args:
        value: The timestamp to normalize

    Returns:
        Integer epoch seconds (UTC)

    Raises:
        ValueError: If the value is None, a bool, or cannot be interpreted
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if isinstance(value, datetime):
        return to_epoch_seconds(value)

    if isinstance(value, (int, float)):
        if abs(value) >= _MILLISECOND_THRESHOLD:
            return int(value // 1000)
        return int(value)

    if isinstance(value, Mapping):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None or isinstance(seconds, bool):
            raise ValueError(f"Timestamp mapping has no seconds field: {value!r}")
        return int(seconds)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Timestamp string cannot be empty")
        try:
            return normalize_timestamp(float(text))
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return to_epoch_seconds(datetime.fromisoformat(text))
        except ValueError as e:
            raise ValueError(f"Unparseable timestamp string: {value!r}") from e

    raise ValueError(f"Unsupported timestamp type: {type(value).__name__}")
