from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models import LeaveRequest, LeaveRequestStatus
from app.services.monthly_calc import clip_to_month, count_working_days, month_bounds, working_days

logger = logging.getLogger("app.leaves")


@dataclass
class LeaveAggregate:
    employee_id: int
    year: int
    month: int
    days: set[date] = field(default_factory=set)
    by_type: dict[str, int] = field(default_factory=dict)

    @property
    def total_days(self) -> int:
        return len(self.days)


def recount_leave_days(leave_request: LeaveRequest) -> int:
    return count_working_days(leave_request.start_date, leave_request.end_date)


def fetch_approved_leave(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
) -> list[LeaveRequest]:
    return list(
        db.scalars(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveRequestStatus.APPROVED,
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
            .order_by(LeaveRequest.start_date.asc(), LeaveRequest.id.asc())
        ).all()
    )


def summarize_approved_leave(
    leave_requests: list[LeaveRequest],
    *,
    employee_id: int,
    year: int,
    month: int,
) -> LeaveAggregate:
    month_start, month_end = month_bounds(year, month)
    aggregate = LeaveAggregate(employee_id=employee_id, year=year, month=month)

    for leave_request in leave_requests:
        if leave_request.status != LeaveRequestStatus.APPROVED:
            continue
        clipped = clip_to_month(leave_request.start_date, leave_request.end_date, year=year, month=month)
        if clipped is None:
            continue

        if leave_request.start_date >= month_start and leave_request.end_date <= month_end:
            recounted = recount_leave_days(leave_request)
            if recounted != leave_request.number_of_days:
                logger.warning(
                    "leave_day_count_mismatch",
                    extra={
                        "leave_request_id": leave_request.id,
                        "stored_days": leave_request.number_of_days,
                        "recounted_days": recounted,
                    },
                )

        new_days = [day for day in working_days(*clipped).days if day not in aggregate.days]
        aggregate.days.update(new_days)
        if new_days:
            code = leave_request.leave_type_code
            aggregate.by_type[code] = aggregate.by_type.get(code, 0) + len(new_days)

    return aggregate


def aggregate_approved_leave(
    db: Session,
    *,
    employee_id: int,
    year: int,
    month: int,
) -> LeaveAggregate:
    month_start, month_end = month_bounds(year, month)
    leave_requests = fetch_approved_leave(
        db,
        employee_id=employee_id,
        start_date=month_start,
        end_date=month_end,
    )
    return summarize_approved_leave(leave_requests, employee_id=employee_id, year=year, month=month)
