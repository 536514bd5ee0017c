"""Time helpers.

Timestamps are stored as naive UTC datetimes. Aware values coming in over
the API are converted at the boundary, naive ones are taken to be UTC.
"""

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize a datetime to naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def fixed_clock(now: datetime) -> Clock:
    """Return a clock frozen at ``now`` (used by tests and replays)."""
    frozen = to_utc_naive(now)
    return lambda: frozen
