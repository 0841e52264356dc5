from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a calendar date in YYYY-MM-DD form.

    - None / "" -> None
    - date objects pass through
    - anything else raises ValueError
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    return date.fromisoformat(s)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_iso_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


def modification_deadline(reading_date: date, tz_name: str, cutoff_hour: int) -> datetime:
    """
    Last instant a reading for `reading_date` may be corrected: the
    cutoff hour of the following calendar day, in station-local time.
    Returned as an aware datetime.
    """
    local_day = reading_date + timedelta(days=1)
    return datetime.combine(local_day, time(hour=cutoff_hour), tzinfo=ZoneInfo(tz_name))


def is_past(deadline: datetime, now: Optional[datetime] = None) -> bool:
    """True once `now` (naive = UTC) is strictly after `deadline`."""
    if now is None:
        now = utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now > deadline
