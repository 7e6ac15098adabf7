from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.audit import log_audit, request_audit_context
from app.db import get_db
from app.models import AuditActorType, LeaveRequestStatus, SummaryStatus
from app.schemas import (
    BatchGenerationRead,
    BulkApprovalRead,
    EmployeeProjectRead,
    LeaveBalanceInitRead,
    LeaveBalanceInitRequest,
    LeaveBalanceRead,
    LeaveBulkApproveRequest,
    LeaveRequestRead,
    LeaveRequestRejectRequest,
    LeaveStatisticsRead,
    LeaveTypeRead,
    MonthlySummaryGenerateAllRequest,
    MonthlySummaryGenerateRequest,
    MonthlySummaryRead,
    PerformanceScoreRead,
    SummaryApproveRequest,
    SummaryBulkApproveRequest,
    SummaryRejectRequest,
)
from app.security import require_admin_permission
from app.services import approvals
from app.services.leave_requests import (
    approve_leave_request,
    bulk_approve_leave_requests,
    fetch_leave_balances,
    initialize_leave_balances,
    leave_statistics,
    list_leave_requests,
    list_leave_types,
    reject_leave_request,
)
from app.services.monthly import (
    generate_for_all_employees,
    generate_or_refresh,
    get_summary,
    list_summaries,
)
from app.services.performance import score_active_employees
from app.services.project_directory import resolve_employee_projects

router = APIRouter(tags=["admin"])


def _actor_id(claims: dict[str, Any]) -> str:
    return str(claims.get("username") or claims.get("sub") or "admin")


def _audit(
    db: Session,
    request: Request,
    claims: dict[str, Any],
    *,
    action: str,
    entity_type: str,
    entity_id: str | None,
    details: dict[str, Any] | None = None,
) -> None:
    log_audit(
        db,
        actor_type=AuditActorType.ADMIN,
        actor_id=_actor_id(claims),
        action=action,
        success=True,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        **request_audit_context(request),
    )


@router.post(
    "/api/admin/monthly-summaries/generate",
    response_model=MonthlySummaryRead,
    status_code=status.HTTP_201_CREATED,
)
def generate_monthly_summary_endpoint(
    payload: MonthlySummaryGenerateRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("summaries", write=True)),
    db: Session = Depends(get_db),
) -> MonthlySummaryRead:
    summary = generate_or_refresh(
        db,
        employee_id=payload.employee_id,
        month=payload.month,
        year=payload.year,
        actor_id=_actor_id(claims),
        tax_percentage=payload.tax_percentage,
    )
    _audit(
        db,
        request,
        claims,
        action="MONTHLY_SUMMARY_GENERATED",
        entity_type="monthly_summary",
        entity_id=str(summary.id),
        details={"employee_id": payload.employee_id, "month": payload.month, "year": payload.year},
    )
    return summary


@router.post(
    "/api/admin/monthly-summaries/generate-all",
    response_model=BatchGenerationRead,
)
def generate_all_monthly_summaries_endpoint(
    payload: MonthlySummaryGenerateAllRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("summaries", write=True)),
    db: Session = Depends(get_db),
) -> BatchGenerationRead:
    result = generate_for_all_employees(
        db,
        month=payload.month,
        year=payload.year,
        actor_id=_actor_id(claims),
        tax_percentage=payload.tax_percentage,
    )
    _audit(
        db,
        request,
        claims,
        action="MONTHLY_SUMMARY_BATCH_GENERATED",
        entity_type="monthly_summary",
        entity_id=None,
        details={
            "month": payload.month,
            "year": payload.year,
            "generated": len(result.generated_ids),
            "skipped": len(result.skipped),
            "failed": len(result.failed),
        },
    )
    return BatchGenerationRead.model_validate(result)


@router.get(
    "/api/admin/monthly-summaries",
    response_model=list[MonthlySummaryRead],
    dependencies=[Depends(require_admin_permission("summaries"))],
)
def list_monthly_summaries_endpoint(
    employee_id: int | None = Query(default=None, ge=1),
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    status_filter: SummaryStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[MonthlySummaryRead]:
    return list_summaries(
        db,
        employee_id=employee_id,
        month=month,
        year=year,
        status=status_filter,
    )


@router.post(
    "/api/admin/monthly-summaries/bulk-approve",
    response_model=BulkApprovalRead,
)
def bulk_approve_monthly_summaries_endpoint(
    payload: SummaryBulkApproveRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("summaries", write=True)),
    db: Session = Depends(get_db),
) -> BulkApprovalRead:
    result = approvals.bulk_approve(
        db,
        summary_ids=payload.summary_ids,
        admin_signature=payload.admin_signature,
        admin_id=_actor_id(claims),
        remarks=payload.remarks,
    )
    _audit(
        db,
        request,
        claims,
        action="MONTHLY_SUMMARY_BULK_APPROVED",
        entity_type="monthly_summary",
        entity_id=None,
        details={"approved_ids": result.approved_ids, "skipped_ids": result.skipped_ids},
    )
    return BulkApprovalRead.model_validate(result)


@router.get(
    "/api/admin/monthly-summaries/{summary_id}",
    response_model=MonthlySummaryRead,
    dependencies=[Depends(require_admin_permission("summaries"))],
)
def get_monthly_summary_endpoint(
    summary_id: int,
    db: Session = Depends(get_db),
) -> MonthlySummaryRead:
    return get_summary(db, summary_id)


@router.post(
    "/api/admin/monthly-summaries/{summary_id}/approve",
    response_model=MonthlySummaryRead,
)
def approve_monthly_summary_endpoint(
    summary_id: int,
    payload: SummaryApproveRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("summaries", write=True)),
    db: Session = Depends(get_db),
) -> MonthlySummaryRead:
    summary = approvals.approve(
        db,
        summary_id=summary_id,
        admin_signature=payload.admin_signature,
        admin_id=_actor_id(claims),
        remarks=payload.remarks,
    )
    _audit(
        db,
        request,
        claims,
        action="MONTHLY_SUMMARY_APPROVED",
        entity_type="monthly_summary",
        entity_id=str(summary.id),
        details={"employee_id": summary.employee_id},
    )
    return summary


@router.post(
    "/api/admin/monthly-summaries/{summary_id}/reject",
    response_model=MonthlySummaryRead,
)
def reject_monthly_summary_endpoint(
    summary_id: int,
    payload: SummaryRejectRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("summaries", write=True)),
    db: Session = Depends(get_db),
) -> MonthlySummaryRead:
    summary = approvals.reject(
        db,
        summary_id=summary_id,
        remarks=payload.remarks,
        admin_id=_actor_id(claims),
    )
    _audit(
        db,
        request,
        claims,
        action="MONTHLY_SUMMARY_REJECTED",
        entity_type="monthly_summary",
        entity_id=str(summary.id),
        details={"employee_id": summary.employee_id, "remarks": summary.admin_remarks},
    )
    return summary


@router.get(
    "/api/admin/leave-requests",
    response_model=list[LeaveRequestRead],
    dependencies=[Depends(require_admin_permission("leaves"))],
)
def list_leave_requests_endpoint(
    employee_id: int | None = Query(default=None, ge=1),
    status_filter: LeaveRequestStatus | None = Query(default=None, alias="status"),
    year: int | None = Query(default=None, ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> list[LeaveRequestRead]:
    return list_leave_requests(db, employee_id=employee_id, status=status_filter, year=year)


@router.get(
    "/api/admin/leave-types",
    response_model=list[LeaveTypeRead],
    dependencies=[Depends(require_admin_permission("leaves"))],
)
def list_leave_types_endpoint(db: Session = Depends(get_db)) -> list[LeaveTypeRead]:
    return list_leave_types(db)


@router.get(
    "/api/admin/leave-statistics",
    response_model=LeaveStatisticsRead,
    dependencies=[Depends(require_admin_permission("leaves"))],
)
def leave_statistics_endpoint(
    year: int | None = Query(default=None, ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> LeaveStatisticsRead:
    return LeaveStatisticsRead.model_validate(leave_statistics(db, year=year or date.today().year))


@router.post(
    "/api/admin/leave-requests/bulk-approve",
    response_model=BulkApprovalRead,
)
def bulk_approve_leave_requests_endpoint(
    payload: LeaveBulkApproveRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("leaves", write=True)),
    db: Session = Depends(get_db),
) -> BulkApprovalRead:
    result = bulk_approve_leave_requests(
        db,
        leave_request_ids=payload.leave_request_ids,
        admin_id=_actor_id(claims),
    )
    _audit(
        db,
        request,
        claims,
        action="LEAVE_REQUEST_BULK_APPROVED",
        entity_type="leave_request",
        entity_id=None,
        details={"approved_ids": result.approved_ids, "skipped_ids": result.skipped_ids},
    )
    return BulkApprovalRead.model_validate(result)


@router.post(
    "/api/admin/leave-requests/{leave_request_id}/approve",
    response_model=LeaveRequestRead,
)
def approve_leave_request_endpoint(
    leave_request_id: int,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("leaves", write=True)),
    db: Session = Depends(get_db),
) -> LeaveRequestRead:
    leave_request = approve_leave_request(db, leave_request_id=leave_request_id, admin_id=_actor_id(claims))
    _audit(
        db,
        request,
        claims,
        action="LEAVE_REQUEST_APPROVED",
        entity_type="leave_request",
        entity_id=str(leave_request.id),
        details={
            "employee_id": leave_request.employee_id,
            "leave_type_code": leave_request.leave_type_code,
            "number_of_days": leave_request.number_of_days,
        },
    )
    return leave_request


@router.post(
    "/api/admin/leave-requests/{leave_request_id}/reject",
    response_model=LeaveRequestRead,
)
def reject_leave_request_endpoint(
    leave_request_id: int,
    payload: LeaveRequestRejectRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("leaves", write=True)),
    db: Session = Depends(get_db),
) -> LeaveRequestRead:
    leave_request = reject_leave_request(
        db,
        leave_request_id=leave_request_id,
        admin_id=_actor_id(claims),
        rejection_reason=payload.rejection_reason,
    )
    _audit(
        db,
        request,
        claims,
        action="LEAVE_REQUEST_REJECTED",
        entity_type="leave_request",
        entity_id=str(leave_request.id),
        details={"employee_id": leave_request.employee_id},
    )
    return leave_request


@router.post(
    "/api/admin/leave-balances/initialize",
    response_model=LeaveBalanceInitRead,
)
def initialize_leave_balances_endpoint(
    payload: LeaveBalanceInitRequest,
    request: Request,
    claims: dict[str, Any] = Depends(require_admin_permission("leaves", write=True)),
    db: Session = Depends(get_db),
) -> LeaveBalanceInitRead:
    result = initialize_leave_balances(db, year=payload.year, employee_ids=payload.employee_ids)
    _audit(
        db,
        request,
        claims,
        action="LEAVE_BALANCES_INITIALIZED",
        entity_type="leave_balance",
        entity_id=None,
        details={"year": result.year, "employee_count": result.employee_count, "created": result.created},
    )
    return LeaveBalanceInitRead.model_validate(result)


@router.get(
    "/api/admin/leave-balances/{employee_id}",
    response_model=list[LeaveBalanceRead],
    dependencies=[Depends(require_admin_permission("leaves"))],
)
def get_leave_balances_endpoint(
    employee_id: int,
    year: int | None = Query(default=None, ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> list[LeaveBalanceRead]:
    balances = fetch_leave_balances(db, employee_id=employee_id, year=year or date.today().year)
    return [LeaveBalanceRead.model_validate(item) for item in balances]


@router.get(
    "/api/admin/performance",
    response_model=list[PerformanceScoreRead],
    dependencies=[Depends(require_admin_permission("reports"))],
)
def list_performance_endpoint(
    priority: str | None = Query(default=None, pattern="^(GOOD|MEDIUM|HIGH)$"),
    db: Session = Depends(get_db),
) -> list[PerformanceScoreRead]:
    items = score_active_employees(db)
    return [
        PerformanceScoreRead(
            employee_id=item.employee_id,
            full_name=item.full_name,
            attendance_pct=item.score.attendance_pct,
            priority=item.score.priority.value,
            present_days=item.score.present_days,
            total_days=item.score.total_days,
        )
        for item in items
        if priority is None or item.score.priority.value == priority
    ]


@router.get(
    "/api/admin/employees/{employee_id}/projects",
    response_model=list[EmployeeProjectRead],
    dependencies=[Depends(require_admin_permission("reports"))],
)
def list_employee_projects_endpoint(
    employee_id: int,
    include_removed: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[EmployeeProjectRead]:
    projects = resolve_employee_projects(db, employee_id=employee_id, include_removed=include_removed)
    return [EmployeeProjectRead.model_validate(item) for item in projects]
