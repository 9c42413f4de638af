"""
Clock helpers. Everything is stored and compared in UTC.
"""
from datetime import date, datetime, timezone
from typing import Optional

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def resolve_now(now: Optional[datetime] = None) -> datetime:
    return ensure_utc(now) if now is not None else now_utc()


def resolve_today(today: Optional[date] = None) -> date:
    return today if today is not None else now_utc().date()
