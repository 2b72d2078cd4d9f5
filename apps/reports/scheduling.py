# apps/reports/scheduling.py
"""
Next-run computation for scheduled reports.

Pure functions over a ``ScheduleSpec`` and an injectable ``now``; no database,
no clock reads other than the ``now`` default. Results are aware UTC datetimes.

Weekdays follow 0 = Sunday ... 6 = Saturday.
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

FREQUENCIES = ("daily", "weekly", "monthly", "custom")

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class InvalidScheduleError(ValueError):
    """A schedule that can't produce a next run (bad time, missing day, ...)."""


def parse_time_of_day(value: str) -> time:
    """'HH:MM' (24-hour) -> time. Anything else raises InvalidScheduleError."""
    m = _TIME_RE.match((value or "").strip())
    if not m:
        raise InvalidScheduleError(f"Invalid time of day {value!r}; expected HH:MM (24-hour).")
    return time(int(m.group(1)), int(m.group(2)))


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidScheduleError(f"Unknown timezone {name!r}.") from None


@dataclass(frozen=True)
class ScheduleSpec:
    frequency: str
    time_of_day: str
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    timezone: str = "UTC"
    active: bool = True

    def validate(self) -> "ScheduleSpec":
        if self.frequency not in FREQUENCIES:
            raise InvalidScheduleError(
                f"Unknown frequency {self.frequency!r}; use one of {', '.join(FREQUENCIES)}."
            )
        parse_time_of_day(self.time_of_day)
        if self.frequency == "weekly":
            if self.day_of_week is None:
                raise InvalidScheduleError("Weekly schedules need day_of_week (0 = Sunday ... 6 = Saturday).")
            if not 0 <= int(self.day_of_week) <= 6:
                raise InvalidScheduleError("day_of_week must be between 0 and 6.")
        if self.frequency == "monthly":
            if self.day_of_month is None:
                raise InvalidScheduleError("Monthly schedules need day_of_month (1-31).")
            if not 1 <= int(self.day_of_month) <= 31:
                raise InvalidScheduleError("day_of_month must be between 1 and 31.")
        _zone(self.timezone)
        return self


def _sunday_based(d: date) -> int:
    # date.weekday() is 0 = Monday; shift so 0 = Sunday
    return (d.weekday() + 1) % 7


def _clamped(year: int, month: int, day_of_month: int) -> date:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last))


def _at(d: date, tod: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(d, tod, tzinfo=tz)


def next_run(spec: ScheduleSpec, now: Optional[datetime] = None) -> datetime:
    """
    The next instant (aware, UTC) the schedule fires, strictly after ``now``
    for daily/weekly/monthly. ``custom`` only applies the time of day to
    today and may return an instant at or before ``now``.
    """
    spec.validate()
    if now is None:
        now = datetime.now(dt_timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=dt_timezone.utc)

    tz = _zone(spec.timezone)
    tod = parse_time_of_day(spec.time_of_day)
    today = now.astimezone(tz).date()

    if spec.frequency == "daily":
        candidate = _at(today, tod, tz)
        if candidate <= now:
            candidate = _at(today + timedelta(days=1), tod, tz)

    elif spec.frequency == "weekly":
        shift = (int(spec.day_of_week) - _sunday_based(today)) % 7
        day = today + timedelta(days=shift)
        candidate = _at(day, tod, tz)
        if candidate <= now:
            candidate = _at(day + timedelta(days=7), tod, tz)

    elif spec.frequency == "monthly":
        dom = int(spec.day_of_month)
        candidate = _at(_clamped(today.year, today.month, dom), tod, tz)
        if candidate <= now:
            year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
            candidate = _at(_clamped(year, month, dom), tod, tz)

    else:  # custom
        candidate = _at(today, tod, tz)

    return candidate.astimezone(dt_timezone.utc)
