"""
Time parsing and timezone normalization.

Photo capture times are stored as naive local wall-clock datetimes in the configured
timezone (a photo shot at 07:00 in August is a morning, August photo no matter where
the server runs). Aware inputs are converted to that timezone before the tzinfo is dropped.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo


def ensure_tz(dt: datetime, timezone: str) -> datetime:
    """Ensure `dt` has tzinfo; attach `timezone` if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(timezone))
    return dt


def to_local_naive(dt: datetime, timezone: str) -> datetime:
    """Return `dt` as a naive wall-clock time in `timezone` (naive inputs pass through)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo(timezone)).replace(tzinfo=None)


def local_now(timezone: str) -> datetime:
    return datetime.now(ZoneInfo(timezone)).replace(tzinfo=None)


def parse_datetime(value: str, timezone: str) -> datetime:
    """Parse ISO-8601 datetime string and ensure tzinfo is present.

    Notes:
    - Accepts a trailing `Z` (UTC) and converts it to `+00:00` for `fromisoformat`.
    - If the parsed value is naive, the provided `timezone` is attached.
    """
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    return ensure_tz(dt, timezone)
