"""Time and formatting helpers."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Current UTC time as a naive datetime.

    Columns store naive UTC (datetime.utcnow() style), so comparisons against
    stored values must use naive datetimes too.
    """
    return datetime.now(UTC).replace(tzinfo=None)


def local_date(moment: datetime, timezone: str) -> date:
    """Calendar date of a naive-UTC (or aware) moment in the given timezone.

    Example: 2026-01-31 23:30 UTC in Africa/Lagos (UTC+1) -> 2026-02-01
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(ZoneInfo(timezone)).date()


def month_start(day: date) -> date:
    """First day of the month containing ``day``."""
    return day.replace(day=1)


def format_utc_datetime(dt: datetime | None) -> str | None:
    """Format datetime to ISO string with Z suffix for UTC.

    Stored datetimes are naive UTC and isoformat() adds no zone; the Z suffix
    lets clients parse them as UTC.

    Args:
        dt: datetime object (assumed UTC) or None

    Returns:
        ISO format string with Z suffix (e.g., "2026-01-10T10:30:00Z") or None
    """
    if dt is None:
        return None
    return f"{dt.isoformat()}Z"
