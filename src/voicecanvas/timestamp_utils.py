"""Timestamp utilities for Voice Canvas.

Timestamps are stored as integer milliseconds since the epoch. These
functions convert them for display purposes.
"""

from datetime import datetime, timezone
from typing import Optional


def current_timestamp() -> int:
    """Get current time as a millisecond Unix timestamp.

    Returns:
        Current Unix timestamp (milliseconds since epoch)
    """
    return int(datetime.now(tz=timezone.utc).timestamp() * 1000)


def format_timestamp(ts: Optional[int]) -> str:
    """Format a millisecond Unix timestamp in the local timezone.

    Args:
        ts: Unix timestamp (milliseconds since epoch) or None

    Returns:
        Formatted string "YYYY-MM-DD HH:MM:SS" in local timezone,
        or empty string if ts is None
    """
    if ts is None:
        return ""
    utc_dt = datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
    local_dt = utc_dt.astimezone()
    return local_dt.strftime("%Y-%m-%d %H:%M:%S")

