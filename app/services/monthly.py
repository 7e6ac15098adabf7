from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.errors import ApiError, NotFoundError, StateConflictError, SummaryNotGeneratedError
from app.models import Employee, HoursSource, MonthlySummary, SummaryStatus
from app.services.approvals import SummaryAction, compare_and_swap_status, next_status
from app.services.attendance import aggregate_attendance
from app.services.leaves import aggregate_approved_leave
from app.services.monthly_calc import month_bounds, working_days
from app.services.payroll import calculate_payroll_amounts, next_invoice_number
from app.services.timesheets import aggregate_timesheets

logger = logging.getLogger("app.monthly")

_CLEARED_APPROVAL_FIELDS: dict[str, Any] = {
    "staff_signature": None,
    "staff_signed_at": None,
    "staff_signed_by": None,
    "admin_signature": None,
    "admin_approved_at": None,
    "admin_approved_by": None,
    "admin_remarks": None,
}


@dataclass
class BatchItemOutcome:
    employee_id: int
    code: str
    message: str


@dataclass
class BatchGenerationResult:
    month: int
    year: int
    generated_ids: list[int] = field(default_factory=list)
    skipped: list[BatchItemOutcome] = field(default_factory=list)
    failed: list[BatchItemOutcome] = field(default_factory=list)


def _load_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee not found.")
    return employee


def build_summary_values(
    db: Session,
    employee: Employee,
    *,
    month: int,
    year: int,
    tax_percentage: float | Decimal | None = None,
) -> dict[str, Any]:
    """Compute every derived column of a summary for one employee-month.

    Presence and hours come from the employee's configured hours source.
    A working day covered by approved leave is counted as leave even when
    the employee also checked in that day, so ``present_days``,
    ``approved_leaves`` and ``absent_days`` partition the working days.
    """
    month_start, month_end = month_bounds(year, month)
    calendar = working_days(month_start, month_end)
    working_set = set(calendar.days)

    leave = aggregate_approved_leave(db, employee_id=employee.id, year=year, month=month)
    timesheets = aggregate_timesheets(db, employee_id=employee.id, year=year, month=month)

    hours_source = employee.hours_source or HoursSource.ATTENDANCE
    if hours_source == HoursSource.TIMESHEET:
        worked, overtime = timesheets.total_worked, timesheets.total_overtime
        present_dates = set(timesheets.present_dates)
    else:
        attendance = aggregate_attendance(
            db,
            employee_id=employee.id,
            start_date=month_start,
            end_date=month_end,
        )
        worked = attendance.total_regular + attendance.total_overtime
        overtime = attendance.total_overtime
        present_dates = set(attendance.per_day)

    leave_days = leave.days & working_set
    present_days = (present_dates & working_set) - leave_days
    absent_days = working_set - present_days - leave_days

    total_worked = round(worked, 2)
    total_ot = round(overtime, 2)
    payroll = calculate_payroll_amounts(
        employee,
        present_days=len(present_days),
        working_days=calendar.count,
        worked_hours=total_worked,
        ot_hours=total_ot,
        tax_percentage=tax_percentage,
    )

    if timesheets.unapproved:
        logger.info(
            "summary_unapproved_timesheets",
            extra={
                "employee_id": employee.id,
                "month": month,
                "year": year,
                "unapproved_hours": round(sum(item.total_hours for item in timesheets.unapproved), 2),
            },
        )

    return {
        "hours_source": hours_source,
        "total_working_days": calendar.count,
        "present_days": len(present_days),
        "total_worked_hours": total_worked,
        "total_ot_hours": total_ot,
        "approved_leaves": float(len(leave_days)),
        "absent_days": len(absent_days),
        "project_breakdown": [item.to_dict() for item in timesheets.approved],
        "payment_type": payroll.payment_type,
        "subtotal": payroll.subtotal,
        "tax_percentage": payroll.tax_percentage,
        "tax_amount": payroll.tax_amount,
        "total_amount": payroll.total_amount,
    }


def _find_summary(db: Session, *, employee_id: int, month: int, year: int) -> MonthlySummary | None:
    return db.scalar(
        select(MonthlySummary).where(
            MonthlySummary.employee_id == employee_id,
            MonthlySummary.month == month,
            MonthlySummary.year == year,
        )
    )


def _create_summary(
    db: Session,
    *,
    employee_id: int,
    month: int,
    year: int,
    actor_id: str | None,
    values: dict[str, Any],
) -> MonthlySummary:
    summary = MonthlySummary(
        employee_id=employee_id,
        month=month,
        year=year,
        status=SummaryStatus.DRAFT,
        created_by=actor_id,
        **values,
    )
    if values["subtotal"] > 0:
        summary.invoice_number = next_invoice_number(db, year=year, month=month)
    db.add(summary)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise StateConflictError(
            "Monthly summary or its invoice number was written by another request. Try again."
        ) from exc
    db.refresh(summary)
    return summary


def generate_or_refresh(
    db: Session,
    *,
    employee_id: int,
    month: int,
    year: int,
    actor_id: str | None = None,
    tax_percentage: float | Decimal | None = None,
) -> MonthlySummary:
    employee = _load_employee(db, employee_id)
    existing = _find_summary(db, employee_id=employee_id, month=month, year=year)
    if existing is not None:
        # Fail before aggregating when the summary is already finalized.
        next_status(existing.status, SummaryAction.REGENERATE)

    values = build_summary_values(db, employee, month=month, year=year, tax_percentage=tax_percentage)

    if existing is None:
        summary = _create_summary(
            db,
            employee_id=employee_id,
            month=month,
            year=year,
            actor_id=actor_id,
            values=values,
        )
        created = True
    else:
        observed = existing.status
        updates = dict(values, status=next_status(observed, SummaryAction.REGENERATE))
        if observed == SummaryStatus.REJECTED:
            updates.update(_CLEARED_APPROVAL_FIELDS)
        if existing.invoice_number is None and values["subtotal"] > 0:
            updates["invoice_number"] = next_invoice_number(db, year=year, month=month)
        summary = compare_and_swap_status(db, existing, observed=observed, values=updates)
        created = False

    logger.info(
        "summary_generated",
        extra={
            "summary_id": summary.id,
            "employee_id": employee_id,
            "month": month,
            "year": year,
            "is_new": created,
            "hours_source": summary.hours_source.value,
            "present_days": summary.present_days,
            "absent_days": summary.absent_days,
        },
    )
    return summary


def list_active_employee_ids(db: Session) -> list[int]:
    return list(db.scalars(select(Employee.id).where(Employee.is_active.is_(True)).order_by(Employee.id.asc())).all())


def generate_for_all_employees(
    db: Session,
    *,
    month: int,
    year: int,
    actor_id: str | None = None,
    tax_percentage: float | Decimal | None = None,
) -> BatchGenerationResult:
    month_bounds(year, month)
    result = BatchGenerationResult(month=month, year=year)

    for employee_id in list_active_employee_ids(db):
        try:
            summary = generate_or_refresh(
                db,
                employee_id=employee_id,
                month=month,
                year=year,
                actor_id=actor_id,
                tax_percentage=tax_percentage,
            )
        except ApiError as exc:
            db.rollback()
            outcome = BatchItemOutcome(employee_id=employee_id, code=exc.code, message=exc.message)
            if exc.code == "SUMMARY_IMMUTABLE":
                result.skipped.append(outcome)
            else:
                result.failed.append(outcome)
                logger.warning(
                    "summary_batch_employee_failed",
                    extra={"employee_id": employee_id, "month": month, "year": year, "code": exc.code},
                )
            continue
        except Exception:
            db.rollback()
            logger.exception(
                "summary_batch_employee_failed",
                extra={"employee_id": employee_id, "month": month, "year": year, "code": "INTERNAL_ERROR"},
            )
            result.failed.append(
                BatchItemOutcome(
                    employee_id=employee_id,
                    code="INTERNAL_ERROR",
                    message="Unexpected error while generating the summary.",
                )
            )
            continue
        result.generated_ids.append(summary.id)

    logger.info(
        "summary_batch_completed",
        extra={
            "month": month,
            "year": year,
            "generated": len(result.generated_ids),
            "skipped": len(result.skipped),
            "failed": len(result.failed),
        },
    )
    return result


def get_summary(db: Session, summary_id: int) -> MonthlySummary:
    summary = db.scalar(
        select(MonthlySummary)
        .options(selectinload(MonthlySummary.employee))
        .where(MonthlySummary.id == summary_id)
    )
    if summary is None:
        raise NotFoundError("Monthly summary not found.")
    return summary


def get_employee_summary(db: Session, *, employee_id: int, month: int, year: int) -> MonthlySummary:
    month_bounds(year, month)
    summary = _find_summary(db, employee_id=employee_id, month=month, year=year)
    if summary is None:
        raise SummaryNotGeneratedError(employee_id=employee_id, month=month, year=year)
    return summary


def list_summaries(
    db: Session,
    *,
    employee_id: int | None = None,
    month: int | None = None,
    year: int | None = None,
    status: SummaryStatus | None = None,
) -> list[MonthlySummary]:
    stmt = select(MonthlySummary).options(selectinload(MonthlySummary.employee))
    if employee_id is not None:
        stmt = stmt.where(MonthlySummary.employee_id == employee_id)
    if month is not None:
        stmt = stmt.where(MonthlySummary.month == month)
    if year is not None:
        stmt = stmt.where(MonthlySummary.year == year)
    if status is not None:
        stmt = stmt.where(MonthlySummary.status == status)
    stmt = stmt.order_by(
        MonthlySummary.year.desc(),
        MonthlySummary.month.desc(),
        MonthlySummary.employee_id.asc(),
    )
    return list(db.scalars(stmt).all())
