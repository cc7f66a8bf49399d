"""
UTC timestamp utilities (stdlib-only).

The execution fence and every resource's last-seen timestamp must be
comparable, so all of syncspine produces timezone-aware UTC datetimes through
this module.

Tags:
    timestamps, utc, datetime, syncspine, stdlib-only
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to a UTC datetime."""
    if s is None:
        return None
    return ensure_utc(datetime.fromisoformat(s))
