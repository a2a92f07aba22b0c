"""UTC-everywhere time handling plus wall-clock arithmetic for the workday."""

from datetime import date, datetime, time, timezone

MINUTES_PER_DAY = 24 * 60


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Current calendar day in UTC."""
    return now_utc().date()


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def parse_clock_time(value: str) -> time:
    """
    Parse a wall-clock "HH:MM" string.

    Raises ValueError on anything that is not a valid 24h time.
    """
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time format '{value}' (expected HH:MM)")

    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time format '{value}' (expected HH:MM)")
    return time(hour, minute)


def minutes_since_midnight(t: time) -> int:
    """Whole minutes elapsed since 00:00 (seconds are ignored)."""
    return t.hour * 60 + t.minute


def time_from_minutes(minutes: int) -> time:
    """
    Inverse of minutes_since_midnight.

    Raises ValueError when the value falls outside a single day.
    """
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)
