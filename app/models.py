from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


class SummaryStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SIGNED_BY_STAFF = "SIGNED_BY_STAFF"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LeaveRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class LeaveTypeCode(str, enum.Enum):
    ANNUAL = "ANNUAL"
    SICK = "SICK"
    UNPAID = "UNPAID"


class HoursSource(str, enum.Enum):
    ATTENDANCE = "ATTENDANCE"
    TIMESHEET = "TIMESHEET"


class PaymentType(str, enum.Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"
    CONTRACT = "contract"


class TimesheetStatus(str, enum.Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    HALF_DAY = "Half-Day"


class TimesheetApprovalStatus(str, enum.Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class OvertimeApprovalStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class AuditActorType(str, enum.Enum):
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    SYSTEM = "SYSTEM"


def _value_enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    # Persist the wire value ("pending", "Half-Day"), not the member name.
    return Enum(enum_cls, name=name, values_callable=lambda members: [item.value for item in members])


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    hours_source: Mapped[HoursSource] = mapped_column(
        _value_enum(HoursSource, "hours_source"),
        nullable=False,
        default=HoursSource.ATTENDANCE,
        server_default=text("'ATTENDANCE'"),
    )
    payment_type: Mapped[PaymentType | None] = mapped_column(
        _value_enum(PaymentType, "payment_type"),
        nullable=True,
    )
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    daily_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    monthly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    contract_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    attendance_events: Mapped[list[AttendanceEvent]] = relationship(back_populates="employee")
    leave_requests: Mapped[list[LeaveRequest]] = relationship(back_populates="employee")
    monthly_summaries: Mapped[list[MonthlySummary]] = relationship(back_populates="employee")


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))


class ProjectAssignment(Base):
    __tablename__ = "project_assignments"
    __table_args__ = (UniqueConstraint("employee_id", "project_id", name="uq_project_assignments_employee_project"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    removed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project: Mapped[Project] = relationship()


class AttendanceEvent(Base):
    __tablename__ = "attendance_events"
    __table_args__ = (Index("ix_attendance_events_employee_check_in", "employee_id", "check_in_time"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    check_in_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    employee: Mapped[Employee] = relationship(back_populates="attendance_events")


class LeaveType(Base):
    __tablename__ = "leave_types"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_capped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    default_days_per_year: Mapped[float | None] = mapped_column(Float, nullable=True)


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type_code", "year", name="uq_leave_balances_employee_type_year"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_code: Mapped[str] = mapped_column(ForeignKey("leave_types.code"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_days: Mapped[float | None] = mapped_column(Float, nullable=True)
    used_days: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def remaining_days(self) -> float | None:
        if self.total_days is None:
            return None
        return self.total_days - (self.used_days or 0)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    leave_type_code: Mapped[str] = mapped_column(ForeignKey("leave_types.code"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    number_of_days: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[LeaveRequestStatus] = mapped_column(
        _value_enum(LeaveRequestStatus, "leave_request_status"),
        nullable=False,
        default=LeaveRequestStatus.PENDING,
        server_default=text("'pending'"),
        index=True,
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee] = relationship(back_populates="leave_requests")
    leave_type: Mapped[LeaveType] = relationship()


class Timesheet(Base):
    __tablename__ = "timesheets"
    __table_args__ = (
        UniqueConstraint("staff_id", "work_date", "project_id", name="uq_timesheets_staff_date_project"),
        Index("ix_timesheets_staff_work_date", "staff_id", "work_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    staff_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    status: Mapped[TimesheetStatus] = mapped_column(
        _value_enum(TimesheetStatus, "timesheet_status"),
        nullable=False,
        default=TimesheetStatus.PRESENT,
        server_default=text("'Present'"),
    )
    approval_status: Mapped[TimesheetApprovalStatus] = mapped_column(
        _value_enum(TimesheetApprovalStatus, "timesheet_approval_status"),
        nullable=False,
        default=TimesheetApprovalStatus.DRAFT,
        server_default=text("'Draft'"),
    )
    ot_approval_status: Mapped[OvertimeApprovalStatus | None] = mapped_column(
        _value_enum(OvertimeApprovalStatus, "ot_approval_status"),
        nullable=True,
    )

    project: Mapped[Project | None] = relationship()


class MonthlySummary(Base):
    __tablename__ = "monthly_summaries"
    __table_args__ = (
        UniqueConstraint("employee_id", "month", "year", name="uq_monthly_summaries_employee_month_year"),
        Index("ix_monthly_summaries_year_month", "year", "month"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[SummaryStatus] = mapped_column(
        Enum(SummaryStatus, name="monthly_summary_status"),
        nullable=False,
        default=SummaryStatus.DRAFT,
        server_default=text("'DRAFT'"),
        index=True,
    )
    hours_source: Mapped[HoursSource] = mapped_column(
        _value_enum(HoursSource, "hours_source"),
        nullable=False,
        default=HoursSource.ATTENDANCE,
        server_default=text("'ATTENDANCE'"),
    )
    total_working_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    present_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    total_worked_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    total_ot_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    approved_leaves: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default=text("0"))
    absent_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    project_breakdown: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )

    staff_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    staff_signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    staff_signed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    admin_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_approved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    payment_type: Mapped[PaymentType | None] = mapped_column(_value_enum(PaymentType, "payment_type"), nullable=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default=text("0"))
    tax_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=0, server_default=text("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default=text("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0, server_default=text("0"))
    invoice_number: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True, index=True)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee] = relationship(back_populates="monthly_summaries")

    @property
    def employee_name(self) -> str | None:
        return self.employee.full_name if self.employee is not None else None


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
