from __future__ import annotations

from datetime import datetime, timedelta, timezone

__all__ = ["DEFAULT_FRESHNESS_WINDOW", "is_fresh"]

DEFAULT_FRESHNESS_WINDOW = timedelta(days=30)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_fresh(published_at: datetime, now: datetime, *, window: timedelta = DEFAULT_FRESHNESS_WINDOW) -> bool:
    """Return True when ``published_at`` lies within ``window`` of ``now`` (inclusive)."""
    return _as_utc(now) - _as_utc(published_at) <= window
