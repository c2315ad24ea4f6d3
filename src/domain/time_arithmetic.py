"""
Time Arithmetic Module

Pure helpers for "HH:MM[:SS]" clock strings, elapsed time across midnight
and duration formatting. Nothing here raises on bad input.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Union


MONTH_NAMES = [
    "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]

# Dimulai dari Minggu
DAY_NAMES = ["Minggu", "Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu"]

MINUTES_PER_DAY = 24 * 60
SECONDS_PER_DAY = 24 * 60 * 60

_DURATION_PATTERN = re.compile(r"^\s*(?:(\d+)\s*j)?\s*(?:(\d+)\s*m)?\s*$")


@dataclass(frozen=True)
class ClockTime:
    """Time of day without a date."""
    hour: int = 0
    minute: int = 0
    second: int = 0

    @property
    def total_minutes(self) -> int:
        return self.hour * 60 + self.minute

    @property
    def total_seconds(self) -> int:
        return self.hour * 3600 + self.minute * 60 + self.second


ClockLike = Union[str, ClockTime, datetime, None]


def parse_time(time_str: ClockLike) -> ClockTime:
    """
    Parse "HH:MM" or "HH:MM:SS" into a ClockTime.

    Missing seconds default to 0. Malformed or empty input yields 00:00:00;
    callers must not rely on this function to signal errors.
    """
    if isinstance(time_str, ClockTime):
        return time_str
    if isinstance(time_str, datetime):
        return ClockTime(time_str.hour, time_str.minute, time_str.second)
    if not time_str:
        return ClockTime()
    try:
        parts = str(time_str).strip().split(':')
        if len(parts) not in (2, 3):
            return ClockTime()
        hour = int(parts[0])
        minute = int(parts[1])
        second = int(parts[2]) if len(parts) == 3 else 0
    except (ValueError, TypeError):
        return ClockTime()
    if not (0 <= hour < 24 and 0 <= minute < 60 and 0 <= second < 60):
        return ClockTime()
    return ClockTime(hour, minute, second)


def minutes_between(start: ClockLike, end: ClockLike) -> int:
    """
    Minutes from `start` to `end`.

    A negative difference is always read as "end is on the next day" and
    wrapped forward by 1440 minutes, including for same-day negative gaps.
    """
    diff = parse_time(end).total_minutes - parse_time(start).total_minutes
    if diff < 0:
        diff += MINUTES_PER_DAY
    return diff


def seconds_between(start: ClockLike, end: ClockLike) -> int:
    """Same as minutes_between() at second resolution."""
    diff = parse_time(end).total_seconds - parse_time(start).total_seconds
    if diff < 0:
        diff += SECONDS_PER_DAY
    return diff


def format_duration(minutes: int) -> str:
    """Format minutes as "Xj Ym", or "Ym" when under an hour."""
    minutes = max(0, int(minutes))
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}j {mins}m"
    return f"{mins}m"


def parse_duration(text: str) -> int:
    """Inverse of format_duration(). Unparseable text counts as 0 minutes."""
    if not text:
        return 0
    match = _DURATION_PATTERN.match(str(text))
    if not match or not any(match.groups()):
        return 0
    hours = int(match.group(1) or 0)
    mins = int(match.group(2) or 0)
    return hours * 60 + mins


def format_clock(moment: datetime, with_seconds: bool = False) -> str:
    """Format a datetime as "HH:MM" (or "HH:MM:SS")."""
    if with_seconds:
        return moment.strftime("%H:%M:%S")
    return moment.strftime("%H:%M")


def date_key(day: Union[date, datetime]) -> str:
    """ISO calendar date used to tag shift/break/izin records."""
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


def format_id_date(day: date) -> str:
    """Indonesian short date, e.g. 1/3/2025."""
    return f"{day.day}/{day.month}/{day.year}"


def day_name(day: date) -> str:
    """Indonesian weekday name."""
    # date.weekday(): Senin=0, DAY_NAMES dimulai Minggu
    return DAY_NAMES[(day.weekday() + 1) % 7]
