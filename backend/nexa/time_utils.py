from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string into a UTC-naive datetime.

    Naive input is taken as UTC; "Z" and explicit offsets are converted.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return as_utc_naive(datetime.fromisoformat(s))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if value is None or not str(value).strip():
        return None
    return date.fromisoformat(str(value).strip())


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 with a trailing 'Z' (naive means UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def hours_elapsed(since: datetime, now: Optional[datetime] = None) -> float:
    now = as_utc_naive(now) if now is not None else utcnow()
    return (now - as_utc_naive(since)).total_seconds() / 3600.0
