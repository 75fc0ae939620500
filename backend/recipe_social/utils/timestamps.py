"""UTC clock helpers.

Timestamps are stored naive in UTC so PostgreSQL ``timestamp`` columns and
SQLite round-trip the same values.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

# Smallest step the stores keep; used to keep per-conversation creation times strictly increasing
TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_after(previous: Optional[datetime]) -> datetime:
    """Current time, nudged forward so it sorts strictly after ``previous``."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + TICK
    return now
