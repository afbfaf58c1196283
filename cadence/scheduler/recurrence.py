"""Recurrence arithmetic — computes the next occurrence of a schedule."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from cadence.scheduler.due import interval_seconds, parse_time_of_day
from cadence.scheduler.models import Frequency

if TYPE_CHECKING:
    from cadence.scheduler.models import Schedule

_FIXED_PERIODS = {
    Frequency.HOURLY: timedelta(hours=1),
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(days=7),
}


def add_months(value: datetime, months: int, day: int | None = None) -> datetime:
    """Add calendar months, clamping the day to the target month's length.

    *day* overrides the day of month to aim for, so an anchor on the 31st
    lands on the 28th in February and back on the 31st in March.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(day or value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _count(value: int | None) -> int | None:
    if value is None:
        return None
    count = int(value)
    if count <= 0:
        msg = f"Invalid count: {value!r}"
        raise ValueError(msg)
    return count


def multiple_times_period(schedule: Schedule) -> timedelta | None:
    """Spacing between ``multiple_times`` runs: span / count, floored.

    Per hour floors to whole minutes, per day to whole hours, per week and
    per month (taken as 30 days) to whole days. Never less than one unit.
    """
    if per_hour := _count(schedule.times_per_hour):
        return timedelta(minutes=max(60 // per_hour, 1))
    if per_day := _count(schedule.times_per_day):
        return timedelta(hours=max(24 // per_day, 1))
    if per_week := _count(schedule.times_per_week):
        return timedelta(days=max(7 // per_week, 1))
    if per_month := _count(schedule.times_per_month):
        return timedelta(days=max(30 // per_month, 1))
    return None


def period_of(schedule: Schedule) -> timedelta | None:
    """Fixed-length period of *schedule*, or None (monthly, once, invalid)."""
    frequency = schedule.frequency
    if frequency in _FIXED_PERIODS:
        return _FIXED_PERIODS[frequency]
    if frequency == Frequency.EVERY_X_MINUTES:
        return timedelta(seconds=interval_seconds(schedule))
    if frequency == Frequency.MULTIPLE_TIMES:
        return multiple_times_period(schedule)
    return None


def _next_occurrence(schedule: Schedule, from_time: datetime) -> datetime | None:
    if schedule.time:
        hour, minute = parse_time_of_day(schedule.time)
    else:
        hour, minute = from_time.hour, from_time.minute
    base = from_time.replace(hour=hour, minute=minute, second=0, microsecond=0)

    if schedule.frequency == Frequency.MONTHLY:
        anchor = schedule.anchor_day()
        months = 1
        nxt = add_months(base, months, anchor)
        while nxt <= from_time:
            months += 1
            nxt = add_months(base, months, anchor)
        return nxt

    period = period_of(schedule)
    if period is None:
        return None
    nxt = base + period
    if nxt <= from_time:
        nxt += period * ((from_time - nxt) // period + 1)
    return nxt


def next_occurrence(schedule: Schedule | None, from_time: datetime) -> datetime | None:
    """Compute the occurrence after *from_time*.

    The base is *from_time* at the schedule's time of day (seconds zeroed),
    advanced by one period: an hour, a day, seven days, a calendar month,
    the interval, or the ``multiple_times`` spacing. When that still is not
    after *from_time* the period is applied again until it is.

    ``once`` schedules are terminal and always return None, as do schedules
    that cannot be interpreted.
    """
    if schedule is None or schedule.frequency == Frequency.ONCE:
        return None
    try:
        return _next_occurrence(schedule, from_time)
    except (TypeError, ValueError, OverflowError):
        return None
