"""Due-ness predicate — decides whether a schedule fires at a given instant.

Every comparison tolerates ``DUE_TOLERANCE`` (30 seconds) either side of the
nominal instant to absorb polling jitter. The tolerance is a fixed constant,
not a per-task setting.

All functions here are pure: they read the schedule, the current time and the
last execution time, and never raise. A schedule that cannot be interpreted
(bad time string, missing date, non-positive interval, unknown frequency) is
simply never due, so one corrupt task cannot stall a scan.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from cadence.scheduler.models import Frequency

if TYPE_CHECKING:
    from cadence.scheduler.models import Schedule

DUE_TOLERANCE = timedelta(seconds=30)

_HOUR = timedelta(hours=1)

_WEEKDAYS = {
    name: index
    for index, full in enumerate(calendar.day_name)
    for name in (full.lower(), full[:3].lower())
}


def parse_time_of_day(value: str | None) -> tuple[int, int]:
    """Parse ``"HH:MM"`` (seconds, if present, are ignored)."""
    if not value:
        msg = "Missing time of day"
        raise ValueError(msg)
    parts = value.strip().split(":")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        msg = f"Time of day out of range: {value!r}"
        raise ValueError(msg)
    return hour, minute


def parse_weekday(value: str | None) -> int | None:
    """Map a weekday name (``"monday"``, ``"Mon"``) to ``datetime.weekday()``."""
    if not value:
        return None
    return _WEEKDAYS.get(value.strip().lower())


def interval_seconds(schedule: Schedule) -> int:
    interval = schedule.interval
    if interval is None or int(interval) <= 0:
        msg = f"Invalid interval: {interval!r}"
        raise ValueError(msg)
    return int(interval) * 60


def _as_local(ts: datetime, now: datetime) -> datetime:
    if ts.tzinfo is None or now.tzinfo is None:
        return ts.replace(tzinfo=now.tzinfo)
    return ts.astimezone(now.tzinfo)


def _today_at(schedule: Schedule, now: datetime) -> datetime:
    hour, minute = parse_time_of_day(schedule.time)
    return now.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _dated(schedule: Schedule, now: datetime) -> datetime:
    if not schedule.date:
        msg = "Schedule has no date"
        raise ValueError(msg)
    day = date.fromisoformat(schedule.date)
    hour, minute = parse_time_of_day(schedule.time)
    return now.replace(
        year=day.year, month=day.month, day=day.day,
        hour=hour, minute=minute, second=0, microsecond=0,
    )


def _nearest_hourly(schedule: Schedule, now: datetime) -> datetime:
    _, minute = parse_time_of_day(schedule.time)
    candidate = now.replace(minute=minute, second=0, microsecond=0)
    offset = (now - candidate).total_seconds()
    if offset > 1800:
        candidate += _HOUR
    elif offset < -1800:
        candidate -= _HOUR
    return candidate


def _nearest_interval_boundary(schedule: Schedule, now: datetime) -> datetime:
    period = interval_seconds(schedule)
    hour, minute = parse_time_of_day(schedule.time or "00:00")
    anchor = (hour * 3600 + minute * 60) % period
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = (now - midnight).total_seconds()
    steps = round((elapsed - anchor) / period)
    return midnight + timedelta(seconds=anchor + steps * period)


def _scheduled_instant(schedule: Schedule, now: datetime) -> datetime | None:
    frequency = schedule.frequency
    if frequency == Frequency.ONCE:
        return _dated(schedule, now)
    if frequency == Frequency.MULTIPLE_TIMES and schedule.date:
        return _dated(schedule, now)
    if frequency in (Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY, Frequency.MULTIPLE_TIMES):
        return _today_at(schedule, now)
    if frequency == Frequency.HOURLY:
        return _nearest_hourly(schedule, now)
    if frequency == Frequency.EVERY_X_MINUTES:
        return _nearest_interval_boundary(schedule, now)
    return None


def scheduled_instant(schedule: Schedule | None, now: datetime) -> datetime | None:
    """Return the nominal instant of the occurrence nearest *now*.

    ``once`` (and dated ``multiple_times``) use their date and time; daily,
    weekly and monthly use today's date at the scheduled time; hourly picks
    the closest scheduled minute; ``every_x_minutes`` picks the closest
    interval boundary. Returns None when the schedule cannot be interpreted.
    """
    if schedule is None:
        return None
    try:
        return _scheduled_instant(schedule, now)
    except (TypeError, ValueError, OverflowError):
        return None


def _within(now: datetime, instant: datetime) -> bool:
    return abs(now - instant) <= DUE_TOLERANCE


def _on_date_within(now: datetime, instant: datetime) -> bool:
    """Dated occurrences only fire on their own calendar day."""
    return instant.date() == now.date() and _within(now, instant)


def _ran_today(last: datetime | None, now: datetime) -> bool:
    return last is not None and last.date() == now.date()


def _ran_for(last: datetime | None, instant: datetime) -> bool:
    """True if *last* already falls inside this occurrence's window."""
    return last is not None and last >= instant - DUE_TOLERANCE


def _reference_weekday(schedule: Schedule, last: datetime | None) -> int | None:
    if last is not None:
        return last.weekday()
    weekday = parse_weekday(schedule.day)
    if weekday is not None:
        return weekday
    if schedule.date:
        return date.fromisoformat(schedule.date).weekday()
    return None


def _reference_month_day(schedule: Schedule, last: datetime | None) -> int | None:
    if schedule.day_of_month is not None:
        return int(schedule.day_of_month)
    if last is not None:
        return last.day
    if schedule.date:
        return date.fromisoformat(schedule.date).day
    return None


def _is_due(schedule: Schedule, now: datetime, last: datetime | None) -> bool:
    frequency = schedule.frequency

    if frequency == Frequency.ONCE:
        return _on_date_within(now, _dated(schedule, now))

    if frequency == Frequency.HOURLY:
        instant = _nearest_hourly(schedule, now)
        return _within(now, instant) and not _ran_for(last, instant)

    if frequency == Frequency.EVERY_X_MINUTES:
        period = interval_seconds(schedule)
        if last is not None and (now - last).total_seconds() < period - DUE_TOLERANCE.total_seconds():
            return False
        return _within(now, _nearest_interval_boundary(schedule, now))

    if frequency == Frequency.DAILY:
        return _within(now, _today_at(schedule, now)) and not _ran_today(last, now)

    if frequency == Frequency.WEEKLY:
        if not _within(now, _today_at(schedule, now)) or _ran_today(last, now):
            return False
        return now.weekday() == _reference_weekday(schedule, last)

    if frequency == Frequency.MONTHLY:
        if not _within(now, _today_at(schedule, now)) or _ran_today(last, now):
            return False
        target = _reference_month_day(schedule, last)
        if target is None:
            return False
        days_in_month = calendar.monthrange(now.year, now.month)[1]
        return now.day == min(target, days_in_month)

    if frequency == Frequency.MULTIPLE_TIMES:
        if schedule.date:
            instant = _dated(schedule, now)
            return _on_date_within(now, instant) and not _ran_for(last, instant)
        instant = _today_at(schedule, now)
        return _within(now, instant) and not _ran_for(last, instant)

    return False


def is_due(
    schedule: Schedule | None,
    now: datetime,
    last_execution_at: datetime | None = None,
) -> bool:
    """Decide whether *schedule* should fire at *now*.

    Args:
        schedule: The task's recurrence rule. None is never due.
        now: Current time in the scheduler's timezone.
        last_execution_at: When the task last ran, used to suppress
            duplicate runs within the same occurrence.
    """
    if schedule is None:
        return False
    last = _as_local(last_execution_at, now) if last_execution_at else None
    try:
        return _is_due(schedule, now, last)
    except (TypeError, ValueError, OverflowError):
        return False
