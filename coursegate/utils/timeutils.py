"""Timezone helpers.

Cassandra returns naive datetimes that are implicitly UTC; everything inside
the engine is compared as aware UTC datetimes.
"""

from collections.abc import Callable
from datetime import UTC, datetime


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is timezone-aware (UTC).

    Cassandra returns naive datetimes; this function adds UTC timezone
    to ensure consistent serialization with timezone info.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string back into an aware UTC datetime."""
    if not value:
        return None
    return ensure_utc_aware(datetime.fromisoformat(value))


def format_datetime(value: datetime | None) -> str | None:
    """Serialize an aware datetime as ISO-8601."""
    if value is None:
        return None
    return ensure_utc_aware(value).isoformat()
