from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import InvalidRangeError
from app.models import AttendanceEvent
from app.services.monthly_calc import DayHours, split_hours, worked_hours_between
from app.settings import get_settings

logger = logging.getLogger("app.attendance")

DEFAULT_ATTENDANCE_TIMEZONE = "Asia/Singapore"


@dataclass
class AttendanceAggregate:
    employee_id: int
    start_date: date
    end_date: date
    per_day: dict[date, DayHours] = field(default_factory=dict)
    total_regular: float = 0.0
    total_overtime: float = 0.0

    @property
    def present_days(self) -> int:
        return len(self.per_day)

    @property
    def incomplete_days(self) -> int:
        return sum(1 for item in self.per_day.values() if not item.complete)


@lru_cache
def _attendance_timezone() -> ZoneInfo:
    raw_name = (get_settings().attendance_timezone or "").strip() or DEFAULT_ATTENDANCE_TIMEZONE
    try:
        return ZoneInfo(raw_name)
    except Exception:
        logger.warning("attendance_timezone_invalid", extra={"timezone": raw_name})
        return ZoneInfo(DEFAULT_ATTENDANCE_TIMEZONE)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date_from_utc(ts_utc: datetime) -> date:
    return _to_utc(ts_utc).astimezone(_attendance_timezone()).date()


def local_date_range_to_utc_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    tz = _attendance_timezone()
    start_local = datetime.combine(start_date, datetime.min.time(), tzinfo=tz)
    end_local = datetime.combine(end_date + timedelta(days=1), datetime.min.time(), tzinfo=tz)
    return start_local.astimezone(timezone.utc), end_local.astimezone(timezone.utc)


def fetch_attendance(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
) -> list[AttendanceEvent]:
    start_dt, end_dt = local_date_range_to_utc_bounds(start_date, end_date)
    return list(
        db.scalars(
            select(AttendanceEvent)
            .where(
                AttendanceEvent.employee_id == employee_id,
                AttendanceEvent.check_in_time >= start_dt,
                AttendanceEvent.check_in_time < end_dt,
            )
            .order_by(AttendanceEvent.check_in_time.asc(), AttendanceEvent.id.asc())
        ).all()
    )


def _pick_day_events(events: list[AttendanceEvent], *, employee_id: int) -> dict[date, AttendanceEvent]:
    by_day: dict[date, list[AttendanceEvent]] = {}
    for event in events:
        by_day.setdefault(local_date_from_utc(event.check_in_time), []).append(event)

    picked: dict[date, AttendanceEvent] = {}
    for day, day_events in by_day.items():
        latest = max(day_events, key=lambda item: (_to_utc(item.check_in_time), item.id or 0))
        if len(day_events) > 1:
            logger.warning(
                "attendance_duplicate_day_events",
                extra={
                    "employee_id": employee_id,
                    "day": day.isoformat(),
                    "event_ids": [item.id for item in day_events],
                    "kept_event_id": latest.id,
                },
            )
        picked[day] = latest
    return picked


def build_day_hours(event: AttendanceEvent) -> DayHours:
    if event.check_out_time is None:
        # Open session: counts as presence, contributes no hours.
        return DayHours(regular=0.0, overtime=0.0, complete=False)
    return split_hours(worked_hours_between(event.check_in_time, event.check_out_time))


def summarize_events(
    events: list[AttendanceEvent],
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
) -> AttendanceAggregate:
    aggregate = AttendanceAggregate(employee_id=employee_id, start_date=start_date, end_date=end_date)
    for day, event in sorted(_pick_day_events(events, employee_id=employee_id).items()):
        if day < start_date or day > end_date:
            continue
        hours = build_day_hours(event)
        aggregate.per_day[day] = hours
        aggregate.total_regular += hours.regular
        aggregate.total_overtime += hours.overtime

    aggregate.total_regular = round(aggregate.total_regular, 2)
    aggregate.total_overtime = round(aggregate.total_overtime, 2)
    return aggregate


def aggregate_attendance(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
) -> AttendanceAggregate:
    if end_date < start_date:
        raise InvalidRangeError("end_date must be greater than or equal to start_date")
    events = fetch_attendance(db, employee_id=employee_id, start_date=start_date, end_date=end_date)
    return summarize_events(events, employee_id=employee_id, start_date=start_date, end_date=end_date)
