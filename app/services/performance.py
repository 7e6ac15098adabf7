from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import AttendanceEvent, Employee
from app.services.attendance import local_date_from_utc, local_date_range_to_utc_bounds
from app.settings import get_settings

EMPTY_WINDOW_DAYS = 30
GOOD_THRESHOLD = 80
MEDIUM_THRESHOLD = 50


class PerformancePriority(str, enum.Enum):
    GOOD = "GOOD"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


_PRIORITY_ORDER = {
    PerformancePriority.GOOD: 0,
    PerformancePriority.MEDIUM: 1,
    PerformancePriority.HIGH: 2,
}


@dataclass(frozen=True)
class PerformanceScore:
    attendance_pct: int
    priority: PerformancePriority
    present_days: int
    total_days: int


@dataclass(frozen=True)
class EmployeePerformance:
    employee_id: int
    full_name: str
    score: PerformanceScore


def _as_local_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return local_date_from_utc(value)
    return value


def priority_for(attendance_pct: int) -> PerformancePriority:
    if attendance_pct > GOOD_THRESHOLD:
        return PerformancePriority.GOOD
    if attendance_pct >= MEDIUM_THRESHOLD:
        return PerformancePriority.MEDIUM
    return PerformancePriority.HIGH


def score(check_in_times: Iterable[date | datetime], today: date) -> PerformanceScore:
    days = {_as_local_date(item) for item in check_in_times}
    if days:
        start = min(days)
        end = max(max(days), today)
    else:
        start = today - timedelta(days=EMPTY_WINDOW_DAYS - 1)
        end = today

    total_days = (end - start).days + 1
    present_days = sum(1 for day in days if start <= day <= end)
    ratio = Decimal(present_days * 100) / Decimal(total_days)
    attendance_pct = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return PerformanceScore(
        attendance_pct=attendance_pct,
        priority=priority_for(attendance_pct),
        present_days=present_days,
        total_days=total_days,
    )


def _rank_key(item: EmployeePerformance) -> tuple[int, int, int]:
    pct = item.score.attendance_pct
    if item.score.priority == PerformancePriority.GOOD:
        pct = -pct
    return _PRIORITY_ORDER[item.score.priority], pct, item.employee_id


def rank_performers(items: Iterable[EmployeePerformance]) -> list[EmployeePerformance]:
    return sorted(items, key=_rank_key)


def score_active_employees(db: Session, *, today: date | None = None) -> list[EmployeePerformance]:
    if today is None:
        today = local_date_from_utc(datetime.now(timezone.utc))
    lookback_days = max(1, get_settings().performance_lookback_days)
    window_start = today - timedelta(days=lookback_days - 1)
    start_dt, end_dt = local_date_range_to_utc_bounds(window_start, today)

    employees = list(
        db.scalars(select(Employee).where(Employee.is_active.is_(True)).order_by(Employee.id.asc())).all()
    )
    check_ins: dict[int, list[datetime]] = {employee.id: [] for employee in employees}
    rows = db.execute(
        select(AttendanceEvent.employee_id, AttendanceEvent.check_in_time)
        .join(Employee, Employee.id == AttendanceEvent.employee_id)
        .where(
            Employee.is_active.is_(True),
            AttendanceEvent.check_in_time >= start_dt,
            AttendanceEvent.check_in_time < end_dt,
        )
    ).all()
    for employee_id, check_in_time in rows:
        check_ins.setdefault(employee_id, []).append(check_in_time)

    return rank_performers(
        EmployeePerformance(
            employee_id=employee.id,
            full_name=employee.full_name,
            score=score(check_ins[employee.id], today),
        )
        for employee in employees
    )
