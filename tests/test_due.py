"""Tests for the due-ness predicate."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from cadence.scheduler.due import is_due, parse_weekday, scheduled_instant
from cadence.scheduler.models import Schedule

TZ = ZoneInfo("UTC")


def _at(hour: int, minute: int, second: int = 0, *, day: int = 2, month: int = 6) -> datetime:
    # 2025-06-02 is a Monday
    return datetime(2025, month, day, hour, minute, second, tzinfo=TZ)


def _poll(schedule: Schedule, start: datetime, end: datetime, step: int = 10) -> list[datetime]:
    """Simulate a poller: return every instant the schedule fired."""
    fired: list[datetime] = []
    last = None
    now = start
    while now <= end:
        if is_due(schedule, now, last):
            fired.append(now)
            last = now
        now += timedelta(seconds=step)
    return fired


# -- once ----------------------------------------------------------------------


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (_at(14, 0, 0), True),
        (_at(14, 0, 25), True),
        (_at(14, 0, 30), True),
        (_at(13, 59, 30), True),
        (_at(14, 0, 31), False),
        (_at(13, 59, 29), False),
    ],
)
def test_once_tolerance(now: datetime, expected: bool) -> None:
    schedule = Schedule(frequency="once", time="14:00", date="2025-06-02")
    assert is_due(schedule, now) is expected


def test_once_other_date_not_due() -> None:
    schedule = Schedule(frequency="once", time="14:00", date="2025-06-03")
    assert is_due(schedule, _at(14, 0)) is False


def test_once_near_midnight_only_on_its_date() -> None:
    schedule = Schedule(frequency="once", time="00:00", date="2025-06-02")
    assert is_due(schedule, _at(23, 59, 45, day=1)) is False
    assert is_due(schedule, _at(0, 0, 5)) is True


# -- hourly --------------------------------------------------------------------


def test_hourly_due_at_scheduled_minute() -> None:
    schedule = Schedule(frequency="hourly", time="09:15")
    assert is_due(schedule, _at(9, 15, 20)) is True
    assert is_due(schedule, _at(16, 15, 0)) is True
    assert is_due(schedule, _at(9, 16, 0)) is False


def test_hourly_near_hour_boundary() -> None:
    schedule = Schedule(frequency="hourly", time="00:00")
    assert is_due(schedule, _at(9, 59, 40)) is True
    assert is_due(schedule, _at(10, 0, 20)) is True


def test_hourly_not_twice_for_same_occurrence() -> None:
    schedule = Schedule(frequency="hourly", time="09:15")
    assert is_due(schedule, _at(9, 15, 20), last_execution_at=_at(9, 15, 5)) is False
    assert is_due(schedule, _at(10, 15, 0), last_execution_at=_at(9, 15, 5)) is True


def test_hourly_polling_fires_once_per_hour() -> None:
    schedule = Schedule(frequency="hourly", time="00:15")
    fired = _poll(schedule, _at(9, 0), _at(11, 0))
    assert len(fired) == 2
    assert [f.hour for f in fired] == [9, 10]


# -- every_x_minutes -----------------------------------------------------------


@pytest.mark.parametrize("minute", [0, 15, 30, 45])
def test_every_x_minutes_aligned_to_boundaries(minute: int) -> None:
    schedule = Schedule(frequency="every_x_minutes", time="09:00", interval=15)
    assert is_due(schedule, _at(11, minute, 10)) is True


def test_every_x_minutes_not_due_between_boundaries() -> None:
    schedule = Schedule(frequency="every_x_minutes", time="09:00", interval=15)
    assert is_due(schedule, _at(11, 7, 0)) is False


def test_every_x_minutes_respects_elapsed_interval() -> None:
    schedule = Schedule(frequency="every_x_minutes", time="09:00", interval=15)
    assert is_due(schedule, _at(11, 15), last_execution_at=_at(11, 0)) is True
    assert is_due(schedule, _at(11, 15), last_execution_at=_at(11, 5)) is False


def test_every_x_minutes_polling_fires_once_per_bucket() -> None:
    schedule = Schedule(frequency="every_x_minutes", time="09:00", interval=15)
    fired = _poll(schedule, _at(9, 0), _at(10, 0))

    assert len(fired) == 5
    boundaries = [scheduled_instant(schedule, f) for f in fired]
    assert boundaries == [_at(9, 0), _at(9, 15), _at(9, 30), _at(9, 45), _at(10, 0)]
    for fire, boundary in zip(fired, boundaries, strict=True):
        assert abs(fire - boundary) <= timedelta(seconds=30)


def test_every_x_minutes_without_time_anchors_at_midnight() -> None:
    schedule = Schedule(frequency="every_x_minutes", interval=20)
    assert is_due(schedule, _at(10, 40, 5)) is True
    assert is_due(schedule, _at(10, 50, 0)) is False


# -- daily ---------------------------------------------------------------------


def test_daily_due_at_time() -> None:
    schedule = Schedule(frequency="daily", time="14:00")
    assert is_due(schedule, _at(14, 0, 10)) is True
    assert is_due(schedule, _at(15, 0)) is False


def test_daily_not_twice_same_day() -> None:
    schedule = Schedule(frequency="daily", time="14:00")
    assert is_due(schedule, _at(14, 0, 20), last_execution_at=_at(14, 0, 0)) is False
    assert is_due(schedule, _at(14, 0, 0, day=3), last_execution_at=_at(14, 0, 0)) is True


def test_daily_polling_fires_once() -> None:
    schedule = Schedule(frequency="daily", time="14:00")
    assert len(_poll(schedule, _at(13, 59), _at(14, 1))) == 1


def test_naive_last_execution_treated_as_local() -> None:
    schedule = Schedule(frequency="daily", time="14:00")
    assert is_due(schedule, _at(14, 0, 10), last_execution_at=datetime(2025, 6, 2, 14, 0)) is False


# -- weekly --------------------------------------------------------------------


def test_weekly_on_named_day() -> None:
    schedule = Schedule(frequency="weekly", time="08:00", day="monday")
    assert is_due(schedule, _at(8, 0, 10)) is True
    assert is_due(schedule, _at(8, 0, 10, day=3)) is False


def test_weekly_uses_weekday_of_last_run() -> None:
    schedule = Schedule(frequency="weekly", time="08:00", day="monday")
    last_monday = datetime(2025, 5, 26, 8, 0, tzinfo=TZ)
    last_wednesday = datetime(2025, 5, 28, 8, 0, tzinfo=TZ)

    assert is_due(schedule, _at(8, 0), last_execution_at=last_monday) is True
    assert is_due(schedule, _at(8, 0), last_execution_at=last_wednesday) is False


def test_weekly_not_twice_same_day() -> None:
    schedule = Schedule(frequency="weekly", time="08:00", day="monday")
    assert is_due(schedule, _at(8, 0, 20), last_execution_at=_at(7, 59, 50)) is False


def test_weekly_falls_back_to_date_anchor() -> None:
    schedule = Schedule(frequency="weekly", time="08:00", date="2025-05-26")
    assert is_due(schedule, _at(8, 0)) is True


def test_weekly_without_reference_never_due() -> None:
    schedule = Schedule(frequency="weekly", time="08:00")
    assert is_due(schedule, _at(8, 0)) is False


def test_parse_weekday() -> None:
    assert parse_weekday("Monday") == 0
    assert parse_weekday("sun") == 6
    assert parse_weekday("someday") is None
    assert parse_weekday(None) is None


# -- monthly -------------------------------------------------------------------


def test_monthly_on_anchor_day() -> None:
    schedule = Schedule(frequency="monthly", time="07:30", date="2025-01-15")
    assert is_due(schedule, _at(7, 30, 5, day=15)) is True
    assert is_due(schedule, _at(7, 30, 5, day=16)) is False


def test_monthly_clamps_to_short_month() -> None:
    schedule = Schedule(frequency="monthly", time="07:30", date="2025-01-31")
    assert is_due(schedule, _at(7, 30, day=28, month=2)) is True
    assert is_due(schedule, _at(7, 30, day=27, month=2)) is False


def test_monthly_uses_day_of_last_run() -> None:
    schedule = Schedule(frequency="monthly", time="07:30", date="2025-01-15")
    last = datetime(2025, 5, 20, 7, 30, tzinfo=TZ)
    assert is_due(schedule, _at(7, 30, day=20), last_execution_at=last) is True
    assert is_due(schedule, _at(7, 30, day=15), last_execution_at=last) is False


def test_monthly_anchor_survives_short_month() -> None:
    # Successor rescheduled after a February run clamped from the 31st
    schedule = Schedule(frequency="monthly", time="07:30", date="2025-03-31", day_of_month=31)
    last = datetime(2025, 2, 28, 7, 30, tzinfo=TZ)
    assert is_due(schedule, _at(7, 30, day=31, month=3), last_execution_at=last) is True
    assert is_due(schedule, _at(7, 30, day=28, month=3), last_execution_at=last) is False


# -- multiple_times ------------------------------------------------------------


def test_multiple_times_dated_occurrence() -> None:
    schedule = Schedule(frequency="multiple_times", time="12:00", date="2025-06-02", times_per_day=3)
    assert is_due(schedule, _at(12, 0, 5)) is True
    assert is_due(schedule, _at(12, 0, 5, day=3)) is False
    assert is_due(schedule, _at(12, 0, 10), last_execution_at=_at(12, 0, 0)) is False


def test_multiple_times_dated_near_midnight_only_on_its_date() -> None:
    schedule = Schedule(frequency="multiple_times", time="00:00", date="2025-06-02", times_per_day=2)
    assert is_due(schedule, _at(23, 59, 45, day=1)) is False
    assert is_due(schedule, _at(0, 0, 5)) is True


def test_multiple_times_undated_uses_time_of_day() -> None:
    schedule = Schedule(frequency="multiple_times", time="08:00", times_per_day=3)
    assert is_due(schedule, _at(8, 0, 0, day=5)) is True


# -- malformed schedules -------------------------------------------------------


@pytest.mark.parametrize(
    "schedule",
    [
        None,
        Schedule(frequency="once", time="25:99", date="2025-06-02"),
        Schedule(frequency="once", time="abc", date="2025-06-02"),
        Schedule(frequency="once", time="14:00"),
        Schedule(frequency="once", time="14:00", date="not-a-date"),
        Schedule(frequency="daily"),
        Schedule(frequency="fortnightly", time="14:00"),
        Schedule(frequency="every_x_minutes", time="14:00", interval=0),
        Schedule(frequency="every_x_minutes", time="14:00"),
    ],
)
def test_malformed_schedule_never_due(schedule: Schedule | None) -> None:
    assert is_due(schedule, _at(14, 0)) is False


# -- scheduled_instant ---------------------------------------------------------


def test_scheduled_instant_hourly_picks_nearest() -> None:
    schedule = Schedule(frequency="hourly", time="00:15")
    assert scheduled_instant(schedule, _at(9, 50)) == _at(10, 15)
    assert scheduled_instant(schedule, _at(9, 40)) == _at(9, 15)


def test_scheduled_instant_every_x_minutes_picks_nearest() -> None:
    schedule = Schedule(frequency="every_x_minutes", time="09:00", interval=15)
    assert scheduled_instant(schedule, _at(11, 7, 0)) == _at(11, 0)
    assert scheduled_instant(schedule, _at(11, 8, 0)) == _at(11, 15)


def test_scheduled_instant_invalid_is_none() -> None:
    assert scheduled_instant(Schedule(frequency="once", time="14:00"), _at(14, 0)) is None
    assert scheduled_instant(None, _at(14, 0)) is None
