"""Working-day and hour-splitting arithmetic.

Every caller that counts business days or splits worked hours into regular and
overtime goes through this module: leave submission, leave aggregation, summary
generation, payroll pro-rating and the leave preview endpoint.
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from app.errors import InvalidRangeError
from app.settings import get_settings

WEEKEND_WEEKDAYS = frozenset({5, 6})
MAX_DAILY_HOURS = 24.0


@dataclass(frozen=True)
class WorkingDays:
    count: int
    days: tuple[date, ...]


@dataclass(frozen=True)
class DayHours:
    regular: float
    overtime: float
    complete: bool = True

    @property
    def worked(self) -> float:
        return round(self.regular + self.overtime, 2)


def is_working_day(day: date) -> bool:
    return day.weekday() not in WEEKEND_WEEKDAYS


def working_days(start: date, end: date) -> WorkingDays:
    if end < start:
        raise InvalidRangeError("end_date must be greater than or equal to start_date")

    days: list[date] = []
    cursor = start
    while cursor <= end:
        if is_working_day(cursor):
            days.append(cursor)
        cursor += timedelta(days=1)
    return WorkingDays(count=len(days), days=tuple(days))


def count_working_days(start: date, end: date) -> int:
    return working_days(start, end).count


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if month < 1 or month > 12:
        raise InvalidRangeError("month must be between 1 and 12", field="month")
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def clip_to_month(start: date, end: date, *, year: int, month: int) -> tuple[date, date] | None:
    month_start, month_end = month_bounds(year, month)
    clipped_start = max(start, month_start)
    clipped_end = min(end, month_end)
    if clipped_end < clipped_start:
        return None
    return clipped_start, clipped_end


def worked_hours_between(check_in: datetime, check_out: datetime) -> float:
    if check_in.tzinfo is None:
        check_in = check_in.replace(tzinfo=timezone.utc)
    if check_out.tzinfo is None:
        check_out = check_out.replace(tzinfo=timezone.utc)
    seconds = (check_out - check_in).total_seconds()
    return min(max(0.0, seconds / 3600), MAX_DAILY_HOURS)


def split_hours(worked: float, *, standard_hours: float | None = None) -> DayHours:
    if standard_hours is None:
        standard_hours = get_settings().standard_daily_hours
    safe_worked = min(max(0.0, worked), MAX_DAILY_HOURS)
    regular = min(safe_worked, standard_hours)
    overtime = max(safe_worked - standard_hours, 0.0)
    return DayHours(regular=round(regular, 2), overtime=round(overtime, 2), complete=True)
