"""Shared validation utilities"""

import re
from datetime import date, datetime, timezone
from typing import Optional, Union

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse a platform date value.

    Accepts ``YYYY-MM-DD`` strings, ISO 8601 timestamps (the time part is
    dropped), ``date`` and ``datetime`` objects.

    Raises:
        ValueError: If the value cannot be read as a date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Invalid date: {value!r}")


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO 8601 timestamp into an aware UTC datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` into minutes since midnight"""
    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight into ``HH:MM``"""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_platform_id(platform: str, value: Optional[str]) -> Optional[str]:
    """
    Build the internal ``<platform>-<id>`` identifier.

    Platforms send their raw ids while polling sync stores prefixed ones;
    both must resolve to the same record.
    """
    if value is None:
        return None
    value = str(value)
    prefix = f"{platform}-"
    return value if value.startswith(prefix) else f"{prefix}{value}"


# Platform status vocabularies mapped onto reservation statuses
RESERVATION_STATUS_ALIASES = {
    "confirmed": "confirmed",
    "accepted": "confirmed",
    "new": "confirmed",
    "modified": "confirmed",
    "checked_in": "checked_in",
    "checked_out": "checked_out",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "declined": "cancelled",
}


def normalize_reservation_status(value: Optional[str]) -> Optional[str]:
    """Map a platform reservation status; unknown values yield None"""
    if not value:
        return None
    return RESERVATION_STATUS_ALIASES.get(str(value).strip().lower())
