# Overview: UTC clock and ISO-8601 helpers; every stored timestamp is naive UTC.

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp used for created_at/updated_at and lot receipt."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    """Business date for due-date and overdue comparisons."""
    return utcnow().date()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-02-01T10:00", "2026-02-01T10:00:00Z" or with an offset.

    Offsets are converted to UTC; naive input is taken as UTC already.
    Blank input gives None.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed
    return parsed.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse "YYYY-MM-DD" (a full datetime is accepted and truncated)."""
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if len(text) > 10:
        parsed = parse_iso_datetime(text)
        return parsed.date() if parsed else None
    return date.fromisoformat(text)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render as "YYYY-MM-DDTHH:MM:SSZ", dropping microseconds."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def to_iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None
