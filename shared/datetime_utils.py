"""
Date/time helpers and the injectable clock — framework-agnostic.

Every component takes a ``Clock`` so tests can freeze or advance time.
MongoDB stores datetimes as naive UTC; ``ensure_utc`` restores awareness on
the way back out.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time as a timezone-aware UTC datetime."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """Clock fixed at a given instant until explicitly moved."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = ensure_utc(start) if start else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **delta: float) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now

    def set(self, when: datetime) -> None:
        self._now = ensure_utc(when)


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as a timezone-aware UTC datetime.

    Naive datetimes (as returned by pymongo) are assumed to be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_storage(value: Any) -> Any:
    """Recursively convert datetimes in *value* to naive UTC for MongoDB.

    Applied to documents, filters and update patches alike so stored values
    and query operands always share one representation.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, dict):
        return {k: to_storage(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_storage(v) for v in value]
    return value


def remaining_minutes(until: datetime, now: datetime) -> int:
    """Whole minutes (rounded up) between *now* and *until*; never negative."""
    seconds = (ensure_utc(until) - ensure_utc(now)).total_seconds()
    if seconds <= 0:
        return 0
    return int(-(-seconds // 60))
