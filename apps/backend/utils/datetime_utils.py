"""
Datetime utility functions.
Provides replacements for deprecated datetime functions.
"""

from datetime import datetime
from typing import Optional
import pytz


_EPOCH = datetime(1970, 1, 1, tzinfo=pytz.UTC)


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def as_utc(value: Optional[datetime]) -> datetime:
    """
    Normalize a stored timestamp for comparison.

    SQLite hands back naive datetimes while PostgreSQL returns aware ones;
    naive values are taken to be UTC. Missing values sort first.
    """
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def recency_key(record) -> tuple:
    """
    Sort key for "most recent record wins" reconciliation.

    Orders by updated_at, then created_at, then id, so the record with the
    greatest key is the most recently written one.
    """
    return (
        as_utc(getattr(record, "updated_at", None)),
        as_utc(getattr(record, "created_at", None)),
        record.id or 0,
    )
