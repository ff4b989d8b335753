"""Human-readable formatting for durations, countdowns and schedules."""

import math
import re
from datetime import datetime
from typing import Optional

from sitequota.models import TimeRange
from sitequota.rules.schedule import DAY_NAMES

# Optional hours part followed by an optional minutes part, nothing else
DURATION_PATTERN = re.compile(
    r"^(?:(\d+)\s*h(?:our|r)?s?)?\s*(?:(\d+)\s*m(?:inute|in)?s?)?$"
)


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def format_duration(minutes: int) -> str:
    """Format minutes as e.g. "45 minutes", "2 hours", "1 hour 30 minutes"."""
    if minutes < 60:
        return _plural(minutes, "minute")

    hours, remaining_minutes = divmod(minutes, 60)
    if remaining_minutes == 0:
        return _plural(hours, "hour")
    return f"{_plural(hours, 'hour')} {_plural(remaining_minutes, 'minute')}"


def parse_duration(text: str) -> Optional[int]:
    """Parse a human duration into minutes.

    Accepts "2h", "90m", "1h30m", "2 hours 30 minutes" or a bare number of
    minutes ("45").

    Returns:
        Duration in minutes, or None if nothing positive could be parsed or
        the text has anything left over ("1h30")
    """
    text = text.lower().strip()

    if text.isdigit():
        return int(text) if int(text) > 0 else None

    match = DURATION_PATTERN.match(text)
    if not match:
        return None

    hours, minutes = match.groups()
    total = int(hours or 0) * 60 + int(minutes or 0)
    return total if total > 0 else None


def format_countdown(unblock_time: Optional[datetime], now: datetime) -> str:
    """Format the time left until `unblock_time`, rounding minutes up."""
    if unblock_time is None:
        return "Unknown"

    seconds = (unblock_time - now).total_seconds()
    if seconds <= 0:
        return "Now"

    minutes = math.ceil(seconds / 60)
    if minutes < 60:
        return _plural(minutes, "minute")

    hours, remaining_minutes = divmod(minutes, 60)
    if remaining_minutes == 0:
        return _plural(hours, "hour")
    return f"{hours}h {remaining_minutes}m"


def format_time(minute: int) -> str:
    """Format a minute of day as 12-hour clock time, e.g. "9:00 AM"."""
    hours, minutes = divmod(minute, 60)
    if hours == 0 or hours == 24:
        return f"12:{minutes:02d} AM"
    if hours < 12:
        return f"{hours}:{minutes:02d} AM"
    if hours == 12:
        return f"12:{minutes:02d} PM"
    return f"{hours - 12}:{minutes:02d} PM"


def format_time_range(time_range: TimeRange) -> str:
    return f"{format_time(time_range.start)} - {format_time(time_range.end)}"


def day_name(index: int) -> str:
    """Day name for a schedule weekday index (0=Sunday)."""
    if 0 <= index < len(DAY_NAMES):
        return DAY_NAMES[index]
    return "Unknown"
