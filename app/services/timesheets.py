from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.models import (
    OvertimeApprovalStatus,
    Timesheet,
    TimesheetApprovalStatus,
    TimesheetStatus,
)
from app.services.monthly_calc import MAX_DAILY_HOURS, month_bounds, split_hours, worked_hours_between

UNASSIGNED_PROJECT_NAME = "Unassigned"


@dataclass
class ProjectBreakdown:
    project_id: int | None
    project_name: str
    days_worked: int = 0
    total_hours: float = 0.0
    ot_hours: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "project_name": self.project_name,
            "days_worked": self.days_worked,
            "total_hours": round(self.total_hours, 2),
            "ot_hours": round(self.ot_hours, 2),
        }


@dataclass
class TimesheetAggregate:
    employee_id: int
    year: int
    month: int
    approved: list[ProjectBreakdown] = field(default_factory=list)
    unapproved: list[ProjectBreakdown] = field(default_factory=list)
    present_dates: set[date] = field(default_factory=set)
    total_worked: float = 0.0
    total_regular: float = 0.0
    total_overtime: float = 0.0
    unapproved_overtime: float = 0.0


@dataclass(frozen=True)
class RowShare:
    """One row's part of its day after the day has been split."""

    row: Timesheet
    worked: float
    overtime: float

    @property
    def overtime_approved(self) -> bool:
        return self.row.ot_approval_status == OvertimeApprovalStatus.APPROVED

    @property
    def paid_overtime(self) -> float:
        return self.overtime if self.overtime_approved else 0.0


def fetch_timesheets(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
) -> list[Timesheet]:
    return list(
        db.scalars(
            select(Timesheet)
            .options(selectinload(Timesheet.project))
            .where(
                Timesheet.staff_id == employee_id,
                Timesheet.work_date >= start_date,
                Timesheet.work_date <= end_date,
            )
            .order_by(Timesheet.work_date.asc(), Timesheet.id.asc())
        ).all()
    )


def timesheet_row_hours(row: Timesheet) -> float:
    """Raw worked hours of one row, before the day is split.

    Check-in/check-out wins when both are recorded, otherwise the stored
    ``total_hours`` is used. Absent rows contribute nothing.
    """
    if row.status == TimesheetStatus.ABSENT:
        return 0.0
    if row.check_in is not None and row.check_out is not None:
        return worked_hours_between(row.check_in, row.check_out)
    return min(max(0.0, float(row.total_hours or 0)), MAX_DAILY_HOURS)


def split_timesheet_day(rows: list[Timesheet]) -> list[RowShare]:
    """Split one day's rows with the attendance rule.

    The rows' hours are summed, capped at ``MAX_DAILY_HOURS`` and split once
    into regular and overtime. Each row gets the day's worked and overtime
    hours in proportion to its own raw hours.
    """
    raw = [(row, timesheet_row_hours(row)) for row in rows]
    day_total = sum(hours for _row, hours in raw)
    if day_total <= 0:
        return [RowShare(row=row, worked=0.0, overtime=0.0) for row, _hours in raw]

    day = split_hours(day_total)
    return [
        RowShare(
            row=row,
            worked=day.worked * hours / day_total,
            overtime=day.overtime * hours / day_total,
        )
        for row, hours in raw
    ]


def _split_by_day(rows: list[Timesheet]) -> list[RowShare]:
    by_day: dict[date, list[Timesheet]] = {}
    for row in rows:
        if row.status == TimesheetStatus.ABSENT:
            continue
        by_day.setdefault(row.work_date, []).append(row)

    shares: list[RowShare] = []
    for work_date in sorted(by_day):
        shares.extend(split_timesheet_day(by_day[work_date]))
    return shares


def _project_key(row: Timesheet) -> tuple[int | None, str]:
    if row.project_id is None or row.project is None:
        return None, UNASSIGNED_PROJECT_NAME
    return row.project_id, row.project.name


def _breakdown(rows: list[Timesheet], shares: list[RowShare]) -> list[ProjectBreakdown]:
    entries: dict[int | None, ProjectBreakdown] = {}
    dates_by_project: dict[int | None, set[date]] = {}
    for row in rows:
        project_id, project_name = _project_key(row)
        entries.setdefault(project_id, ProjectBreakdown(project_id=project_id, project_name=project_name))
    for share in shares:
        project_id, _project_name = _project_key(share.row)
        entry = entries[project_id]
        entry.total_hours += share.worked
        entry.ot_hours += share.paid_overtime
        dates_by_project.setdefault(project_id, set()).add(share.row.work_date)

    for project_id, entry in entries.items():
        entry.days_worked = len(dates_by_project.get(project_id, set()))
        entry.total_hours = round(entry.total_hours, 2)
        entry.ot_hours = round(entry.ot_hours, 2)
    return sorted(entries.values(), key=lambda item: (-item.total_hours, item.project_name))


def summarize_timesheets(
    rows: list[Timesheet],
    *,
    employee_id: int,
    year: int,
    month: int,
) -> TimesheetAggregate:
    month_start, month_end = month_bounds(year, month)
    in_month = [row for row in rows if row.staff_id == employee_id and month_start <= row.work_date <= month_end]
    approved_rows = [row for row in in_month if row.approval_status == TimesheetApprovalStatus.APPROVED]
    unapproved_rows = [row for row in in_month if row.approval_status != TimesheetApprovalStatus.APPROVED]
    approved_shares = _split_by_day(approved_rows)

    aggregate = TimesheetAggregate(
        employee_id=employee_id,
        year=year,
        month=month,
        approved=_breakdown(approved_rows, approved_shares),
        unapproved=_breakdown(unapproved_rows, _split_by_day(unapproved_rows)),
    )
    # Unapproved overtime stays in worked hours and is paid at the base rate.
    for share in approved_shares:
        aggregate.total_worked += share.worked
        aggregate.total_regular += share.worked - share.overtime
        aggregate.total_overtime += share.paid_overtime
        if not share.overtime_approved:
            aggregate.unapproved_overtime += share.overtime
        aggregate.present_dates.add(share.row.work_date)
    aggregate.total_worked = round(aggregate.total_worked, 2)
    aggregate.total_regular = round(aggregate.total_regular, 2)
    aggregate.total_overtime = round(aggregate.total_overtime, 2)
    aggregate.unapproved_overtime = round(aggregate.unapproved_overtime, 2)
    return aggregate


def aggregate_timesheets(
    db: Session,
    *,
    employee_id: int,
    year: int,
    month: int,
) -> TimesheetAggregate:
    month_start, month_end = month_bounds(year, month)
    rows = fetch_timesheets(db, employee_id=employee_id, start_date=month_start, end_date=month_end)
    return summarize_timesheets(rows, employee_id=employee_id, year=year, month=month)


def aggregate_by_project(
    db: Session,
    *,
    employee_id: int,
    year: int,
    month: int,
) -> list[ProjectBreakdown]:
    return aggregate_timesheets(db, employee_id=employee_id, year=year, month=month).approved
