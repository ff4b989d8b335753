"""Weekly schedule evaluation.

Days are indexed 0=Sunday .. 6=Saturday. Time ranges are inclusive on both
ends and never wrap past midnight; everything is local wall-clock time.
"""

import logging
import re
from datetime import datetime
from typing import Optional

from sitequota.models import END_OF_DAY, Schedule, TimeRange

logger = logging.getLogger(__name__)

# Day names indexed by schedule weekday (Sunday=0)
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

TIME_RANGE_PATTERN = re.compile(r"^(\d{2})(\d{2})-(\d{2})(\d{2})$")


def _literal_to_minute(hours: int, minutes: int, literal: str) -> int:
    if hours == 24 and minutes == 0:
        return END_OF_DAY
    if hours > 23 or minutes > 59:
        raise ValueError(f"Time out of range in {literal!r}")
    return hours * 60 + minutes


def parse_time_range(literal: str) -> TimeRange:
    """Parse a "HHMM-HHMM" literal into a TimeRange.

    "2400" is accepted as the end-of-day sentinel (minute 1440).

    Raises:
        ValueError: If the literal is malformed, out of range, or its start
            is after its end (ranges do not wrap past midnight)
    """
    match = TIME_RANGE_PATTERN.match(literal.strip())
    if not match:
        raise ValueError(f"Time range {literal!r} must be in format HHMM-HHMM")

    start_h, start_m, end_h, end_m = (int(part) for part in match.groups())
    start = _literal_to_minute(start_h, start_m, literal)
    end = _literal_to_minute(end_h, end_m, literal)

    if start > end:
        raise ValueError(
            f"Time range {literal!r} crosses midnight; split it into two ranges"
        )
    return TimeRange(start=start, end=end)


def weekday_index(now: datetime) -> int:
    """Weekday of a datetime with Sunday=0 (datetime.weekday() uses Monday=0)."""
    return (now.weekday() + 1) % 7


def minute_of_day(now: datetime) -> int:
    return now.hour * 60 + now.minute


def is_time_in_range(now: datetime, time_range: TimeRange) -> bool:
    """Check if the wall-clock minute of `now` falls within a range."""
    return time_range.contains(minute_of_day(now))


def is_schedule_active(schedule: Optional[Schedule], now: datetime) -> bool:
    """Check if a rule group's schedule is active at the given instant.

    Args:
        schedule: Schedule to check, or None for an always-active group
        now: Local wall-clock time

    Returns:
        True if no schedule is set, or today is an active day and the
        current minute lies within any active time range
    """
    if schedule is None or schedule.is_empty():
        return True

    if weekday_index(now) not in schedule.active_days:
        return False

    for time_range in schedule.active_time_ranges:
        if is_time_in_range(now, time_range):
            return True

    return False
