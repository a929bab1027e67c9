"""UTC datetime utilities."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(UTC)


def to_iso(value: datetime | None) -> str:
    """ISO8601 string for API payloads; empty string when the DB returned NULL."""
    return value.isoformat() if value else ""
