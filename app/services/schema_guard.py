from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "employees": {"id", "hours_source", "payment_type"},
    "attendance_events": {"id", "employee_id", "check_in_time", "check_out_time"},
    "leave_types": {"code", "is_capped"},
    "leave_balances": {"employee_id", "leave_type_code", "year", "total_days", "used_days"},
    "leave_requests": {"id", "status", "number_of_days"},
    "timesheets": {"id", "staff_id", "work_date", "approval_status", "ot_approval_status"},
    "monthly_summaries": {"id", "status", "present_days", "project_breakdown", "invoice_number"},
    "audit_logs": {"id", "action", "details"},
    "alembic_version": {"version_num"},
}

# project_assignments is optional; its absence switches the project directory to timesheets.
OPTIONAL_TABLES: tuple[str, ...] = ("project_assignments",)

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "monthly_summary_status": {"DRAFT", "SIGNED_BY_STAFF", "APPROVED", "REJECTED"},
    "leave_request_status": {"pending", "approved", "rejected", "cancelled"},
    "hours_source": {"ATTENDANCE", "TIMESHEET"},
}


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)

    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            column_names = {str(item.get("name")) for item in inspector.get_columns(table_name)}
        except Exception as exc:  # pragma: no cover
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue

        missing_columns = sorted(item for item in required_columns if item not in column_names)
        if missing_columns:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing_columns)}")

    for table_name in OPTIONAL_TABLES:
        try:
            present = bool(inspector.has_table(table_name))
        except Exception as exc:  # pragma: no cover
            warnings.append(f"TABLE_INSPECTION_FAILED:{table_name}:{exc.__class__.__name__}")
            continue
        if not present:
            warnings.append(f"OPTIONAL_TABLE_MISSING:{table_name}")

    try:
        enums = inspector.get_enums() or []
    except Exception as exc:  # pragma: no cover
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        enums = []

    enum_values_by_name: dict[str, set[str]] = {}
    for enum_item in enums:
        name = str(enum_item.get("name") or "").strip()
        if not name:
            continue
        labels = enum_item.get("labels")
        if isinstance(labels, list):
            enum_values_by_name[name] = {str(label) for label in labels}

    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        if enum_name not in enum_values_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing_values = sorted(item for item in required_values if item not in enum_values_by_name[enum_name])
        if missing_values:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing_values)}")

    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
            version = str(row).strip() if row is not None else ""
            if not version:
                issues.append("ALEMBIC_VERSION_EMPTY")
    except Exception as exc:  # pragma: no cover
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")

    return SchemaGuardResult(
        ok=len(issues) == 0,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
