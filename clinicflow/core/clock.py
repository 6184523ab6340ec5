"""Clinic time source and wall-clock helpers."""

from datetime import UTC, date, datetime, time, tzinfo
from zoneinfo import ZoneInfo

from clinicflow.config import settings


def get_clinic_timezone(name: str | None = None) -> tzinfo:
    """Resolve the configured clinic timezone."""
    zone = name or settings.clinic_timezone
    if zone.upper() == "UTC":
        return UTC
    return ZoneInfo(zone)


def parse_wall_clock(value: str) -> time:
    """
    Parse an "HH:MM" wall-clock string.

    Raises:
        ValueError: If the value is not a valid 24h time
    """
    hours, sep, minutes = value.strip().partition(":")
    if not sep or len(minutes) != 2 or not hours.isdigit() or not minutes.isdigit():
        raise ValueError(f"Invalid time format: {value!r} (expected HH:MM)")
    return time(int(hours), int(minutes))


def scheduled_instant(appointment_date: date, wall_clock: str, tz: tzinfo) -> datetime:
    """Combine an appointment date and its clinic-local time into an aware datetime."""
    return datetime.combine(appointment_date, parse_wall_clock(wall_clock), tzinfo=tz)


class SystemClock:
    """Time source backed by the system clock, in clinic-local time."""

    def __init__(self, tz: tzinfo | None = None):
        """Initialize with the clinic timezone."""
        self.tz = tz or get_clinic_timezone()

    def now(self) -> datetime:
        """Return the current instant."""
        return datetime.now(self.tz)
