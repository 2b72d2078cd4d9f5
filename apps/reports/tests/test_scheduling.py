from datetime import datetime, timedelta, timezone

import pytest

from apps.reports.scheduling import InvalidScheduleError, ScheduleSpec, next_run, parse_time_of_day

UTC = timezone.utc


def at(*args):
    return datetime(*args, tzinfo=UTC)


def test_daily_after_todays_time_rolls_to_tomorrow():
    spec = ScheduleSpec(frequency="daily", time_of_day="09:00")
    assert next_run(spec, at(2024, 1, 15, 10, 0)) == at(2024, 1, 16, 9, 0)


def test_daily_before_todays_time_stays_today():
    spec = ScheduleSpec(frequency="daily", time_of_day="09:00")
    assert next_run(spec, at(2024, 1, 15, 8, 0)) == at(2024, 1, 15, 9, 0)


def test_daily_exactly_now_is_not_returned():
    spec = ScheduleSpec(frequency="daily", time_of_day="09:00")
    assert next_run(spec, at(2024, 1, 15, 9, 0)) == at(2024, 1, 16, 9, 0)


@pytest.mark.parametrize("hour", [0, 6, 9, 12, 23])
def test_daily_falls_within_next_24_hours(hour):
    now = at(2024, 1, 15, hour, 30)
    spec = ScheduleSpec(frequency="daily", time_of_day="09:00")
    result = next_run(spec, now)
    assert now < result <= now + timedelta(hours=24)
    assert (result.hour, result.minute) == (9, 0)


@pytest.mark.parametrize("day", range(14, 22))
def test_weekly_lands_on_soonest_wednesday(day):
    now = at(2024, 1, day, 12, 0)
    result = next_run(ScheduleSpec(frequency="weekly", time_of_day="09:00", day_of_week=3), now)
    assert result.weekday() == 2  # Python counts Monday as 0
    assert now < result <= now + timedelta(days=7)


def test_weekly_from_monday():
    spec = ScheduleSpec(frequency="weekly", time_of_day="09:00", day_of_week=3)
    assert next_run(spec, at(2024, 1, 15, 10, 0)) == at(2024, 1, 17, 9, 0)


def test_weekly_same_day_after_time_moves_a_week():
    spec = ScheduleSpec(frequency="weekly", time_of_day="09:00", day_of_week=3)
    assert next_run(spec, at(2024, 1, 17, 10, 0)) == at(2024, 1, 24, 9, 0)


def test_weekly_zero_is_sunday():
    spec = ScheduleSpec(frequency="weekly", time_of_day="18:30", day_of_week=0)
    assert next_run(spec, at(2024, 1, 15, 10, 0)) == at(2024, 1, 21, 18, 30)


def test_monthly_later_this_month():
    spec = ScheduleSpec(frequency="monthly", time_of_day="09:00", day_of_month=20)
    assert next_run(spec, at(2024, 1, 15, 10, 0)) == at(2024, 1, 20, 9, 0)


def test_monthly_passed_rolls_to_next_month():
    spec = ScheduleSpec(frequency="monthly", time_of_day="09:00", day_of_month=10)
    assert next_run(spec, at(2024, 1, 15, 10, 0)) == at(2024, 2, 10, 9, 0)


def test_monthly_31_clamps_in_30_day_month():
    spec = ScheduleSpec(frequency="monthly", time_of_day="09:00", day_of_month=31)
    assert next_run(spec, at(2024, 4, 15, 10, 0)) == at(2024, 4, 30, 9, 0)
    assert next_run(spec, at(2024, 3, 31, 10, 0)) == at(2024, 4, 30, 9, 0)


def test_monthly_31_clamps_to_leap_february():
    spec = ScheduleSpec(frequency="monthly", time_of_day="09:00", day_of_month=31)
    assert next_run(spec, at(2024, 1, 31, 10, 0)) == at(2024, 2, 29, 9, 0)
    assert next_run(spec, at(2023, 1, 31, 10, 0)) == at(2023, 2, 28, 9, 0)


def test_monthly_december_rolls_into_january():
    spec = ScheduleSpec(frequency="monthly", time_of_day="09:00", day_of_month=5)
    assert next_run(spec, at(2024, 12, 20, 10, 0)) == at(2025, 1, 5, 9, 0)


def test_custom_only_applies_time_of_day():
    spec = ScheduleSpec(frequency="custom", time_of_day="09:00")
    assert next_run(spec, at(2024, 1, 15, 10, 0)) == at(2024, 1, 15, 9, 0)
    assert next_run(spec, at(2024, 1, 15, 8, 0)) == at(2024, 1, 15, 9, 0)


def test_same_inputs_same_result():
    spec = ScheduleSpec(frequency="weekly", time_of_day="07:15", day_of_week=5)
    now = at(2024, 1, 15, 10, 0)
    assert next_run(spec, now) == next_run(spec, now)


def test_naive_now_is_treated_as_utc():
    spec = ScheduleSpec(frequency="daily", time_of_day="09:00")
    assert next_run(spec, datetime(2024, 1, 15, 10, 0)) == at(2024, 1, 16, 9, 0)


def test_time_of_day_is_local_to_schedule_timezone():
    spec = ScheduleSpec(frequency="daily", time_of_day="09:00", timezone="America/New_York")
    # 10:00Z is 05:00 in New York (EST, UTC-5)
    assert next_run(spec, at(2024, 1, 15, 10, 0)) == at(2024, 1, 15, 14, 0)


@pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "noon", "", "12:00:00"])
def test_malformed_time_of_day(value):
    with pytest.raises(InvalidScheduleError):
        parse_time_of_day(value)
    with pytest.raises(InvalidScheduleError):
        next_run(ScheduleSpec(frequency="daily", time_of_day=value), at(2024, 1, 15, 10, 0))


@pytest.mark.parametrize(
    "spec",
    [
        ScheduleSpec(frequency="weekly", time_of_day="09:00"),
        ScheduleSpec(frequency="weekly", time_of_day="09:00", day_of_week=7),
        ScheduleSpec(frequency="monthly", time_of_day="09:00"),
        ScheduleSpec(frequency="monthly", time_of_day="09:00", day_of_month=0),
        ScheduleSpec(frequency="hourly", time_of_day="09:00"),
        ScheduleSpec(frequency="daily", time_of_day="09:00", timezone="Mars/Olympus"),
    ],
)
def test_incomplete_schedules_are_rejected(spec):
    with pytest.raises(InvalidScheduleError):
        spec.validate()


def test_invalid_schedule_error_is_a_value_error():
    assert issubclass(InvalidScheduleError, ValueError)
