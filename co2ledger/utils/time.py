"""
Time utility functions.
"""

from datetime import datetime, date, timezone


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def today() -> date:
    """Get the current UTC date, used as a record's source date."""
    return utc_now().date()
