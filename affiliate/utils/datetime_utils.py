"""
Datetime utilities.

All timestamps written by the affiliate core (calculated_at, paid_at, log
rows) are timezone-aware UTC.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)
