from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.audit import log_audit, request_audit_context
from app.db import get_db
from app.models import AuditActorType
from app.schemas import (
    LeaveBalanceRead,
    LeavePreviewRead,
    LeaveRequestCreate,
    LeaveRequestRead,
    StaffMonthlySummaryRead,
    SummarySignRequest,
)
from app.security import require_employee
from app.services import approvals
from app.services.leave_requests import (
    cancel_leave_request,
    fetch_leave_balances,
    list_leave_requests,
    preview_leave_days,
    submit_leave_request,
)
from app.services.monthly import get_employee_summary, list_summaries

router = APIRouter(tags=["staff"])


def _audit(
    db: Session,
    request: Request,
    employee_id: int,
    *,
    action: str,
    entity_type: str,
    entity_id: str,
    details: dict[str, Any] | None = None,
) -> None:
    log_audit(
        db,
        actor_type=AuditActorType.EMPLOYEE,
        actor_id=str(employee_id),
        action=action,
        success=True,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        **request_audit_context(request),
    )


@router.get("/api/staff/monthly-summaries", response_model=list[StaffMonthlySummaryRead])
def list_own_monthly_summaries(
    year: int | None = Query(default=None, ge=2000, le=2100),
    claims: dict[str, Any] = Depends(require_employee),
    db: Session = Depends(get_db),
) -> list[StaffMonthlySummaryRead]:
    return list_summaries(db, employee_id=claims["employee_id"], year=year)


@router.get("/api/staff/monthly-summaries/{year}/{month}", response_model=StaffMonthlySummaryRead)
def get_own_monthly_summary(
    year: int,
    month: int,
    claims: dict[str, Any] = Depends(require_employee),
    db: Session = Depends(get_db),
) -> StaffMonthlySummaryRead:
    return get_employee_summary(db, employee_id=claims["employee_id"], month=month, year=year)


@router.post("/api/staff/monthly-summaries/{summary_id}/sign", response_model=StaffMonthlySummaryRead)
def sign_own_monthly_summary(
    summary_id: int,
    payload: SummarySignRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_employee),
    db: Session = Depends(get_db),
) -> StaffMonthlySummaryRead:
    employee_id = claims["employee_id"]
    summary = approvals.sign(db, summary_id=summary_id, signature=payload.signature, employee_id=employee_id)
    _audit(
        db,
        request,
        employee_id,
        action="MONTHLY_SUMMARY_SIGNED",
        entity_type="monthly_summary",
        entity_id=str(summary.id),
        details={"month": summary.month, "year": summary.year},
    )
    return summary


@router.get("/api/staff/leave-requests/preview", response_model=LeavePreviewRead)
def preview_leave_request_days(
    start_date: date,
    end_date: date,
    _claims: dict[str, Any] = Depends(require_employee),
) -> LeavePreviewRead:
    result = preview_leave_days(start_date, end_date)
    return LeavePreviewRead(
        start_date=start_date,
        end_date=end_date,
        number_of_days=result.count,
        days=list(result.days),
    )


@router.post(
    "/api/staff/leave-requests",
    response_model=LeaveRequestRead,
    status_code=status.HTTP_201_CREATED,
)
def create_own_leave_request(
    payload: LeaveRequestCreate,
    request: Request,
    claims: dict[str, Any] = Depends(require_employee),
    db: Session = Depends(get_db),
) -> LeaveRequestRead:
    employee_id = claims["employee_id"]
    leave_request = submit_leave_request(
        db,
        employee_id=employee_id,
        leave_type_code=payload.leave_type_code,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    _audit(
        db,
        request,
        employee_id,
        action="LEAVE_REQUEST_SUBMITTED",
        entity_type="leave_request",
        entity_id=str(leave_request.id),
        details={
            "leave_type_code": leave_request.leave_type_code,
            "number_of_days": leave_request.number_of_days,
        },
    )
    return leave_request


@router.get("/api/staff/leave-requests", response_model=list[LeaveRequestRead])
def list_own_leave_requests(
    year: int | None = Query(default=None, ge=2000, le=2100),
    claims: dict[str, Any] = Depends(require_employee),
    db: Session = Depends(get_db),
) -> list[LeaveRequestRead]:
    return list_leave_requests(db, employee_id=claims["employee_id"], year=year)


@router.post("/api/staff/leave-requests/{leave_request_id}/cancel", response_model=LeaveRequestRead)
def cancel_own_leave_request(
    leave_request_id: int,
    request: Request,
    claims: dict[str, Any] = Depends(require_employee),
    db: Session = Depends(get_db),
) -> LeaveRequestRead:
    employee_id = claims["employee_id"]
    leave_request = cancel_leave_request(db, leave_request_id=leave_request_id, employee_id=employee_id)
    _audit(
        db,
        request,
        employee_id,
        action="LEAVE_REQUEST_CANCELLED",
        entity_type="leave_request",
        entity_id=str(leave_request.id),
    )
    return leave_request


@router.get("/api/staff/leave-balances", response_model=list[LeaveBalanceRead])
def list_own_leave_balances(
    year: int | None = Query(default=None, ge=2000, le=2100),
    claims: dict[str, Any] = Depends(require_employee),
    db: Session = Depends(get_db),
) -> list[LeaveBalanceRead]:
    balances = fetch_leave_balances(db, employee_id=claims["employee_id"], year=year or date.today().year)
    return [LeaveBalanceRead.model_validate(item) for item in balances]
