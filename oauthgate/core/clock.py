from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite round-trips tz-aware datetimes as naive UTC. Compare consistently.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
