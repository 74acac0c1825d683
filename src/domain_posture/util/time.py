"""Timestamp and duration utilities.

Simple helpers to keep time handling consistent across the scanner.
"""

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Return current UTC time with timezone info.

    Always use UTC for scan timestamps - makes comparison easier.
    """
    return datetime.now(timezone.utc)


def iso_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return now_utc().isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 / RFC 3339 timestamp into an aware datetime.

    Accepts a trailing 'Z' and naive values (assumed UTC), which is what
    crt.sh and RDAP servers hand back. Returns None if unparseable.
    """
    if not value:
        return None
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end (negative if end is earlier), floored."""
    return int((end - start).total_seconds() // 86400)


def duration_ms(start: datetime, end: Optional[datetime] = None) -> float:
    """Calculate duration in milliseconds between two timestamps.

    If end is None, uses current time.
    """
    if end is None:
        end = now_utc()
    delta = end - start
    return delta.total_seconds() * 1000
