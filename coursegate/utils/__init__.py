"""Utility modules for coursegate."""

from coursegate.utils.timeutils import (
    Clock,
    ensure_utc_aware,
    format_datetime,
    parse_datetime,
    utcnow,
)


__all__ = [
    "Clock",
    "ensure_utc_aware",
    "format_datetime",
    "parse_datetime",
    "utcnow",
]
