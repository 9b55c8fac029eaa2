from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def remaining_seconds(started_at: datetime, total_duration: int, now: datetime | None = None) -> int:
    """Whole seconds left before the deadline, never negative, never above total_duration."""
    now = as_utc(now or utcnow())
    elapsed = int((now - as_utc(started_at)).total_seconds())
    if elapsed < 0:
        elapsed = 0
    return max(0, total_duration - elapsed)


def is_expired(started_at: datetime, total_duration: int, now: datetime | None = None) -> bool:
    return remaining_seconds(started_at, total_duration, now) == 0
