#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, text

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.services.schema_guard import verify_runtime_schema
from app.settings import get_settings

EXPECTED_HEAD = "0005_audit_logs"


def run() -> dict[str, Any]:
    engine = create_engine(get_settings().database_url)
    report: dict[str, Any] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict[str, Any]) -> None:
        report["checks"].append(
            {
                "name": name,
                "status": status,
                "details": details,
            }
        )

    guard = verify_runtime_schema(engine)
    add("schema_guard", "ok" if guard.ok else "fail", guard.to_dict())

    with engine.connect() as conn:
        tables = set(
            conn.execute(
                text(
                    """
                    select table_name
                    from information_schema.tables
                    where table_schema='public'
                    """
                )
            ).scalars()
        )

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_HEAD, "current": current_versions},
        )

        if "monthly_summaries" in tables:
            unsigned_finalized = conn.execute(
                text(
                    """
                    select id
                    from monthly_summaries
                    where status in ('SIGNED_BY_STAFF', 'APPROVED')
                      and staff_signature is null
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "summary_finalized_without_signature",
                "fail" if unsigned_finalized else "ok",
                {"sample_ids": [row[0] for row in unsigned_finalized]},
            )

        if "leave_balances" in tables:
            overdrawn = conn.execute(
                text(
                    """
                    select employee_id, leave_type_code, year, total_days, used_days
                    from leave_balances
                    where total_days is not null and used_days > total_days
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "leave_balance_overdrawn",
                "warn" if overdrawn else "ok",
                {"rows": [list(row) for row in overdrawn]},
            )

        if "attendance_events" in tables:
            orphan_employees = conn.execute(
                text(
                    """
                    select a.id
                    from attendance_events a
                    left join employees e on e.id = a.employee_id
                    where e.id is null
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "attendance_orphan_employee",
                "fail" if orphan_employees else "ok",
                {"sample_ids": [row[0] for row in orphan_employees]},
            )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2, default=str))
