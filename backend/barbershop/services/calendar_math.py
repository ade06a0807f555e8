"""
Calendar math for the booking grid.

Pure functions that turn a weekly operating schedule and a slot interval into
the ordered candidate start times of one day. All times are shop-local
wall-clock ``HH:MM`` strings; days crossing a daylight-saving change are not
supported.
"""

from datetime import date
from typing import List, Union

from barbershop.domain.entities import (
    DaySchedule,
    OperatingSchedule,
    validate_time,
)

MINUTES_PER_DAY = 24 * 60


def parse_time(value: str) -> int:
    """Convert ``HH:MM`` into minutes since midnight."""
    validate_time(value)
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_time(minutes: int) -> str:
    """Convert minutes since midnight into ``HH:MM``."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of day range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def slots_required(duration_minutes: int, interval_minutes: int) -> int:
    """Number of slots a service occupies. Always rounds up."""
    if interval_minutes <= 0:
        raise ValueError("Slot interval must be positive")
    if duration_minutes <= 0:
        raise ValueError("Service duration must be positive")
    return -(-duration_minutes // interval_minutes)


def day_slots(day_schedule: DaySchedule, interval_minutes: int) -> List[str]:
    """Candidate start times of a single day schedule."""
    if interval_minutes <= 0:
        raise ValueError("Slot interval must be positive")
    if not day_schedule.open:
        return []

    start = parse_time(day_schedule.start)
    end = parse_time(day_schedule.end)
    # The last slot may start less than one interval before closing
    return [format_time(t) for t in range(start, end, interval_minutes)]


def generate_day_slots(
    schedule: OperatingSchedule,
    weekday: Union[int, str, date],
    interval_minutes: int,
) -> List[str]:
    """
    Ordered candidate slot start times for a weekday.

    Args:
        schedule: Weekly operating schedule of the shop
        weekday: ``date.weekday()`` index, weekday name or a calendar day
        interval_minutes: Shop-wide slot granularity

    Returns:
        Every ``t = start + k * interval`` with ``start <= t < end``; empty when
        the day is closed.
    """
    if isinstance(weekday, date):
        day_schedule = schedule.for_date(weekday)
    else:
        day_schedule = schedule.for_weekday(weekday)
    return day_slots(day_schedule, interval_minutes)
