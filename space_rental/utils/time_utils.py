"""Time-string parsing and date helpers shared by the reservation services."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 24 * 60


def parse_time(value: str) -> int:
    """Parse ``HH:MM`` into minutes since midnight.

    ``24:00`` is accepted so a slot can end at midnight.
    """
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f"time must follow HH:MM format: {value!r}")
    hours, minutes = (int(part) for part in parts)
    if not 0 <= minutes <= 59:
        raise ValueError(f"minutes out of range: {value!r}")
    total = hours * 60 + minutes
    if not 0 <= total <= MINUTES_PER_DAY:
        raise ValueError(f"hours out of range: {value!r}")
    return total


def format_minutes(total_minutes: int) -> str:
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValueError(f"date must follow YYYY-MM-DD format: {value!r}") from exc


def duration_hours(start: str, end: str) -> float:
    """Hours between two ``HH:MM`` strings; fractional when minutes differ."""
    return (parse_time(end) - parse_time(start)) / 60


def combine(day: date, hhmm: str) -> datetime:
    """Attach an ``HH:MM`` time to a date, rolling ``24:00`` into the next day."""
    minutes = parse_time(hhmm)
    return datetime.combine(day, time()) + timedelta(minutes=minutes)


def now_in(timezone_name: str) -> datetime:
    return datetime.now(ZoneInfo(timezone_name))


def compact_date(day: date) -> str:
    return day.strftime("%Y%m%d")
