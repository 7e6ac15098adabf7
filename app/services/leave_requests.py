from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.errors import ApiError, InvalidRangeError, NotFoundError, StateConflictError, ValidationFailedError
from app.models import Employee, LeaveBalance, LeaveRequest, LeaveRequestStatus, LeaveType, LeaveTypeCode
from app.services.monthly_calc import WorkingDays, working_days
from app.settings import get_settings

logger = logging.getLogger("app.leave_requests")


@dataclass(frozen=True)
class LeaveBalanceView:
    leave_type_code: str
    leave_type_name: str
    year: int
    total_days: float | None
    used_days: float

    @property
    def remaining_days(self) -> float | None:
        if self.total_days is None:
            return None
        return self.total_days - self.used_days


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_capped(leave_type: LeaveType) -> bool:
    if leave_type.code == LeaveTypeCode.UNPAID.value:
        return False
    return bool(leave_type.is_capped)


def default_entitlement(leave_type: LeaveType) -> float | None:
    if not _is_capped(leave_type):
        return None
    settings = get_settings()
    if leave_type.code == LeaveTypeCode.ANNUAL.value:
        return settings.annual_leave_default_days
    if leave_type.code == LeaveTypeCode.SICK.value:
        return settings.sick_leave_default_days
    return leave_type.default_days_per_year


def _load_leave_type(db: Session, code: str) -> LeaveType:
    normalized = (code or "").strip().upper()
    leave_type = db.get(LeaveType, normalized) if normalized else None
    if leave_type is None:
        raise ValidationFailedError(f"Unknown leave type: {code}", field="leave_type_code")
    return leave_type


def _load_leave_request(db: Session, leave_request_id: int) -> LeaveRequest:
    leave_request = db.get(LeaveRequest, leave_request_id)
    if leave_request is None:
        raise NotFoundError("Leave request not found.")
    return leave_request


def _find_balance(db: Session, *, employee_id: int, leave_type_code: str, year: int) -> LeaveBalance | None:
    return db.scalar(
        select(LeaveBalance).where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_code == leave_type_code,
            LeaveBalance.year == year,
        )
    )


def _ensure_balance(db: Session, *, employee_id: int, leave_type: LeaveType, year: int) -> LeaveBalance:
    balance = _find_balance(db, employee_id=employee_id, leave_type_code=leave_type.code, year=year)
    if balance is not None:
        return balance
    balance = LeaveBalance(
        employee_id=employee_id,
        leave_type_code=leave_type.code,
        year=year,
        total_days=default_entitlement(leave_type),
        used_days=0,
    )
    db.add(balance)
    db.flush()
    return balance


def _transition(
    db: Session,
    leave_request: LeaveRequest,
    *,
    target: LeaveRequestStatus,
    values: dict,
) -> None:
    now = _utcnow()
    result = db.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == leave_request.id, LeaveRequest.status == LeaveRequestStatus.PENDING)
        .values(status=target, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise StateConflictError("Leave request is no longer pending.")


def preview_leave_days(start_date: date, end_date: date) -> WorkingDays:
    return working_days(start_date, end_date)


def submit_leave_request(
    db: Session,
    *,
    employee_id: int,
    leave_type_code: str,
    start_date: date,
    end_date: date,
    reason: str | None = None,
) -> LeaveRequest:
    if db.get(Employee, employee_id) is None:
        raise NotFoundError("Employee not found.")
    leave_type = _load_leave_type(db, leave_type_code)

    number_of_days = working_days(start_date, end_date).count
    if number_of_days == 0:
        raise InvalidRangeError("Leave range does not contain any working days.", field="start_date")

    if leave_type.code == LeaveTypeCode.ANNUAL.value:
        balance = _find_balance(db, employee_id=employee_id, leave_type_code=leave_type.code, year=start_date.year)
        if balance is not None:
            remaining = balance.remaining_days
        else:
            remaining = default_entitlement(leave_type)
        if remaining is not None and remaining < number_of_days:
            raise ValidationFailedError(
                f"Insufficient annual leave balance: {remaining:g} day(s) remaining, {number_of_days} requested.",
                field="number_of_days",
            )

    leave_request = LeaveRequest(
        employee_id=employee_id,
        leave_type_code=leave_type.code,
        start_date=start_date,
        end_date=end_date,
        number_of_days=number_of_days,
        reason=(reason or "").strip() or None,
        status=LeaveRequestStatus.PENDING,
    )
    db.add(leave_request)
    db.commit()
    db.refresh(leave_request)
    return leave_request


def approve_leave_request(db: Session, *, leave_request_id: int, admin_id: str) -> LeaveRequest:
    """Approve a pending request and charge its days to the yearly balance.

    The status change and the balance increment share one transaction. The
    increment is computed in SQL so concurrent approvals for the same
    employee cannot lose an update.
    """
    leave_request = _load_leave_request(db, leave_request_id)
    if leave_request.status != LeaveRequestStatus.PENDING:
        raise StateConflictError(f"Leave request is already {leave_request.status.value}.")
    leave_type = _load_leave_type(db, leave_request.leave_type_code)

    now = _utcnow()
    _transition(
        db,
        leave_request,
        target=LeaveRequestStatus.APPROVED,
        values={"approved_by": admin_id, "approved_at": now},
    )

    if _is_capped(leave_type):
        try:
            balance = _ensure_balance(
                db,
                employee_id=leave_request.employee_id,
                leave_type=leave_type,
                year=leave_request.start_date.year,
            )
            db.execute(
                update(LeaveBalance)
                .where(LeaveBalance.id == balance.id)
                .values(used_days=LeaveBalance.used_days + leave_request.number_of_days, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise StateConflictError("Leave balance was changed by another request. Try again.") from exc
    else:
        db.commit()

    db.refresh(leave_request)
    logger.info(
        "leave_request_approved",
        extra={
            "leave_request_id": leave_request.id,
            "employee_id": leave_request.employee_id,
            "leave_type_code": leave_request.leave_type_code,
            "number_of_days": leave_request.number_of_days,
        },
    )
    return leave_request


def reject_leave_request(
    db: Session,
    *,
    leave_request_id: int,
    admin_id: str,
    rejection_reason: str,
) -> LeaveRequest:
    leave_request = _load_leave_request(db, leave_request_id)
    cleaned_reason = (rejection_reason or "").strip()
    if not cleaned_reason:
        raise ValidationFailedError("Rejection reason is required.", field="rejection_reason")
    if leave_request.status != LeaveRequestStatus.PENDING:
        raise StateConflictError(f"Leave request is already {leave_request.status.value}.")

    _transition(
        db,
        leave_request,
        target=LeaveRequestStatus.REJECTED,
        values={"rejection_reason": cleaned_reason, "approved_by": admin_id},
    )
    db.commit()
    db.refresh(leave_request)
    return leave_request


def cancel_leave_request(db: Session, *, leave_request_id: int, employee_id: int) -> LeaveRequest:
    leave_request = _load_leave_request(db, leave_request_id)
    if leave_request.employee_id != employee_id:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Only the requester can cancel this leave request.")
    if leave_request.status != LeaveRequestStatus.PENDING:
        raise StateConflictError(f"Leave request is already {leave_request.status.value}.")

    _transition(db, leave_request, target=LeaveRequestStatus.CANCELLED, values={})
    db.commit()
    db.refresh(leave_request)
    return leave_request


def list_leave_requests(
    db: Session,
    *,
    employee_id: int | None = None,
    status: LeaveRequestStatus | None = None,
    year: int | None = None,
) -> list[LeaveRequest]:
    stmt = select(LeaveRequest).options(selectinload(LeaveRequest.employee))
    if employee_id is not None:
        stmt = stmt.where(LeaveRequest.employee_id == employee_id)
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status)
    if year is not None:
        stmt = stmt.where(
            LeaveRequest.start_date <= date(year, 12, 31),
            LeaveRequest.end_date >= date(year, 1, 1),
        )
    stmt = stmt.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc())
    return list(db.scalars(stmt).all())


def fetch_leave_balances(db: Session, *, employee_id: int, year: int) -> list[LeaveBalanceView]:
    if db.get(Employee, employee_id) is None:
        raise NotFoundError("Employee not found.")
    leave_types = list(db.scalars(select(LeaveType).order_by(LeaveType.code.asc())).all())
    balances = {
        item.leave_type_code: item
        for item in db.scalars(
            select(LeaveBalance).where(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
        ).all()
    }

    views: list[LeaveBalanceView] = []
    for leave_type in leave_types:
        balance = balances.get(leave_type.code)
        if balance is not None:
            total_days = balance.total_days if _is_capped(leave_type) else None
            used_days = float(balance.used_days or 0)
        else:
            total_days = default_entitlement(leave_type)
            used_days = 0.0
        views.append(
            LeaveBalanceView(
                leave_type_code=leave_type.code,
                leave_type_name=leave_type.name,
                year=year,
                total_days=total_days,
                used_days=used_days,
            )
        )
    return views


@dataclass
class LeaveBulkApprovalResult:
    approved_ids: list[int] = field(default_factory=list)
    skipped_ids: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class LeaveTypeUsage:
    leave_type_code: str
    leave_type_name: str
    request_count: int
    total_days: int


@dataclass(frozen=True)
class MonthlyLeaveUsage:
    month: int
    request_count: int
    total_days: int


@dataclass(frozen=True)
class LeaveStatistics:
    year: int
    pending_count: int
    usage_by_type: list[LeaveTypeUsage]
    monthly_usage: list[MonthlyLeaveUsage]


@dataclass(frozen=True)
class LeaveBalanceInitResult:
    year: int
    employee_count: int
    created: int


def list_leave_types(db: Session) -> list[LeaveType]:
    return list(db.scalars(select(LeaveType).order_by(LeaveType.name.asc(), LeaveType.code.asc())).all())


def bulk_approve_leave_requests(
    db: Session,
    *,
    leave_request_ids: Iterable[int],
    admin_id: str,
) -> LeaveBulkApprovalResult:
    """Approve each pending request on its own.

    Every id goes through ``approve_leave_request`` so its balance is charged
    in the same transaction as its status change. Ids that are missing or
    no longer pending are reported as skipped.
    """
    requested = list(dict.fromkeys(int(item) for item in leave_request_ids))
    if not requested:
        raise ValidationFailedError("At least one leave request id is required.", field="leave_request_ids")

    result = LeaveBulkApprovalResult()
    for leave_request_id in requested:
        try:
            approve_leave_request(db, leave_request_id=leave_request_id, admin_id=admin_id)
        except ApiError as exc:
            db.rollback()
            logger.info(
                "leave_request_bulk_skipped",
                extra={"leave_request_id": leave_request_id, "code": exc.code},
            )
            result.skipped_ids.append(leave_request_id)
            continue
        result.approved_ids.append(leave_request_id)
    return result


def leave_statistics(db: Session, *, year: int) -> LeaveStatistics:
    """Pending workload plus approved usage for requests starting in ``year``.

    Usage sums the stored ``number_of_days``; a request is attributed to the
    month it starts in.
    """
    pending_count = db.scalar(
        select(func.count(LeaveRequest.id)).where(LeaveRequest.status == LeaveRequestStatus.PENDING)
    )
    approved = list(
        db.scalars(
            select(LeaveRequest).where(
                LeaveRequest.status == LeaveRequestStatus.APPROVED,
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
        ).all()
    )

    by_type: dict[str, list[int]] = {}
    by_month: dict[int, list[int]] = {}
    for leave_request in approved:
        by_type.setdefault(leave_request.leave_type_code, []).append(leave_request.number_of_days)
        by_month.setdefault(leave_request.start_date.month, []).append(leave_request.number_of_days)

    usage_by_type = [
        LeaveTypeUsage(
            leave_type_code=leave_type.code,
            leave_type_name=leave_type.name,
            request_count=len(by_type.get(leave_type.code, [])),
            total_days=sum(by_type.get(leave_type.code, [])),
        )
        for leave_type in db.scalars(select(LeaveType).order_by(LeaveType.code.asc())).all()
    ]
    monthly_usage = [
        MonthlyLeaveUsage(month=month, request_count=len(days), total_days=sum(days))
        for month, days in sorted(by_month.items())
    ]
    return LeaveStatistics(
        year=year,
        pending_count=int(pending_count or 0),
        usage_by_type=usage_by_type,
        monthly_usage=monthly_usage,
    )


def initialize_leave_balances(
    db: Session,
    *,
    year: int,
    employee_ids: Iterable[int] | None = None,
) -> LeaveBalanceInitResult:
    """Create missing capped balance rows for ``year``.

    Existing rows keep their totals and usage, so running it twice creates
    nothing the second time.
    """
    stmt = select(Employee.id).where(Employee.is_active.is_(True))
    if employee_ids is not None:
        wanted = list(dict.fromkeys(int(item) for item in employee_ids))
        if not wanted:
            raise ValidationFailedError("At least one employee id is required.", field="employee_ids")
        stmt = stmt.where(Employee.id.in_(wanted))
    target_ids = list(db.scalars(stmt.order_by(Employee.id.asc())).all())
    capped_types = [item for item in list_leave_types(db) if _is_capped(item)]

    existing = {
        (row.employee_id, row.leave_type_code)
        for row in db.execute(
            select(LeaveBalance.employee_id, LeaveBalance.leave_type_code).where(
                LeaveBalance.year == year,
                LeaveBalance.employee_id.in_(target_ids),
            )
        )
    }
    created = 0
    for employee_id in target_ids:
        for leave_type in capped_types:
            if (employee_id, leave_type.code) in existing:
                continue
            db.add(
                LeaveBalance(
                    employee_id=employee_id,
                    leave_type_code=leave_type.code,
                    year=year,
                    total_days=default_entitlement(leave_type),
                    used_days=0,
                )
            )
            created += 1
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise StateConflictError("Leave balances were initialized by another request. Try again.") from exc

    logger.info(
        "leave_balances_initialized",
        extra={"year": year, "employee_count": len(target_ids), "created_rows": created},
    )
    return LeaveBalanceInitResult(year=year, employee_count=len(target_ids), created=created)
