from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models import HoursSource, LeaveRequestStatus, PaymentType, SummaryStatus


class ProjectBreakdownRead(BaseModel):
    project_id: int | None = None
    project_name: str
    days_worked: int
    total_hours: float
    ot_hours: float


class StaffMonthlySummaryRead(BaseModel):
    id: int
    employee_id: int
    employee_name: str | None = None
    month: int
    year: int
    status: SummaryStatus
    hours_source: HoursSource
    total_working_days: int
    present_days: int
    total_worked_hours: float
    total_ot_hours: float
    approved_leaves: float
    absent_days: int
    project_breakdown: list[ProjectBreakdownRead] = Field(default_factory=list)
    staff_signature: str | None = None
    staff_signed_at: datetime | None = None
    staff_signed_by: int | None = None
    admin_signature: str | None = None
    admin_approved_at: datetime | None = None
    admin_approved_by: str | None = None
    admin_remarks: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MonthlySummaryRead(StaffMonthlySummaryRead):
    payment_type: PaymentType | None = None
    subtotal: float
    tax_percentage: float
    tax_amount: float
    total_amount: float
    invoice_number: str | None = None


class MonthlySummaryGenerateRequest(BaseModel):
    employee_id: int = Field(ge=1)
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    tax_percentage: float | None = Field(default=None, ge=0, le=100)


class MonthlySummaryGenerateAllRequest(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    tax_percentage: float | None = Field(default=None, ge=0, le=100)


class BatchItemOutcomeRead(BaseModel):
    employee_id: int
    code: str
    message: str

    model_config = ConfigDict(from_attributes=True)


class BatchGenerationRead(BaseModel):
    month: int
    year: int
    generated_ids: list[int]
    skipped: list[BatchItemOutcomeRead]
    failed: list[BatchItemOutcomeRead]

    model_config = ConfigDict(from_attributes=True)


class SummarySignRequest(BaseModel):
    signature: str = Field(min_length=1)


class SummaryApproveRequest(BaseModel):
    admin_signature: str = Field(min_length=1)
    remarks: str | None = Field(default=None, max_length=2000)


class SummaryRejectRequest(BaseModel):
    remarks: str = Field(max_length=2000)


class SummaryBulkApproveRequest(BaseModel):
    summary_ids: list[int] = Field(min_length=1, max_length=500)
    admin_signature: str = Field(min_length=1)
    remarks: str | None = Field(default=None, max_length=2000)


class BulkApprovalRead(BaseModel):
    approved_ids: list[int]
    skipped_ids: list[int]

    model_config = ConfigDict(from_attributes=True)


class LeaveRequestCreate(BaseModel):
    leave_type_code: str = Field(min_length=1, max_length=32)
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=1000)


class LeaveRequestRead(BaseModel):
    id: int
    employee_id: int
    leave_type_code: str
    start_date: date
    end_date: date
    number_of_days: int
    reason: str | None = None
    status: LeaveRequestStatus
    rejection_reason: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LeaveRequestRejectRequest(BaseModel):
    rejection_reason: str = Field(max_length=2000)


class LeavePreviewRead(BaseModel):
    start_date: date
    end_date: date
    number_of_days: int
    days: list[date]


class LeaveBalanceRead(BaseModel):
    leave_type_code: str
    leave_type_name: str
    year: int
    total_days: float | None = None
    used_days: float
    remaining_days: float | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveTypeRead(BaseModel):
    code: str
    name: str
    is_capped: bool
    default_days_per_year: float | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveBulkApproveRequest(BaseModel):
    leave_request_ids: list[int] = Field(min_length=1, max_length=500)


class LeaveTypeUsageRead(BaseModel):
    leave_type_code: str
    leave_type_name: str
    request_count: int
    total_days: int

    model_config = ConfigDict(from_attributes=True)


class MonthlyLeaveUsageRead(BaseModel):
    month: int
    request_count: int
    total_days: int

    model_config = ConfigDict(from_attributes=True)


class LeaveStatisticsRead(BaseModel):
    year: int
    pending_count: int
    usage_by_type: list[LeaveTypeUsageRead]
    monthly_usage: list[MonthlyLeaveUsageRead]

    model_config = ConfigDict(from_attributes=True)


class LeaveBalanceInitRequest(BaseModel):
    year: int = Field(ge=2000, le=2100)
    employee_ids: list[int] | None = Field(default=None, max_length=1000)


class LeaveBalanceInitRead(BaseModel):
    year: int
    employee_count: int
    created: int

    model_config = ConfigDict(from_attributes=True)


class PerformanceScoreRead(BaseModel):
    employee_id: int
    full_name: str
    attendance_pct: int
    priority: str
    present_days: int
    total_days: int


class EmployeeProjectRead(BaseModel):
    project_id: int
    project_name: str
    is_active: bool
    source: str

    model_config = ConfigDict(from_attributes=True)

