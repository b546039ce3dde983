"""
Timezone utilities.

All instants are handled as timezone-aware UTC datetimes. SQLite drops
tzinfo on read, so values coming back from the store go through
ensure_utc() before they are compared with utc_now().
"""
from datetime import datetime, timezone
from typing import Optional

UTC = timezone.utc


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC.

    Examples:
        >>> ensure_utc(datetime(2025, 9, 1, 23, 0)).tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string in UTC, or None."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()
