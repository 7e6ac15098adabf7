"""Add leave types, balances and requests

Revision ID: 0002_leave_requests
Revises: 0001_initial
Create Date: 2026-10-05 00:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0002_leave_requests"
down_revision: Union[str, None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

leave_request_status = postgresql.ENUM(
    "pending",
    "approved",
    "rejected",
    "cancelled",
    name="leave_request_status",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    leave_request_status.create(bind, checkfirst=True)

    leave_types = op.create_table(
        "leave_types",
        sa.Column("code", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_capped", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("default_days_per_year", sa.Float(), nullable=True),
    )
    op.bulk_insert(
        leave_types,
        [
            {"code": "ANNUAL", "name": "Annual Leave", "is_capped": True, "default_days_per_year": 12},
            {"code": "SICK", "name": "Sick Leave", "is_capped": True, "default_days_per_year": 14},
            {"code": "UNPAID", "name": "Unpaid Leave", "is_capped": False, "default_days_per_year": None},
        ],
    )

    op.create_table(
        "leave_balances",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("leave_type_code", sa.String(length=32), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("total_days", sa.Float(), nullable=True),
        sa.Column("used_days", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["leave_type_code"], ["leave_types.code"]),
        sa.UniqueConstraint(
            "employee_id",
            "leave_type_code",
            "year",
            name="uq_leave_balances_employee_type_year",
        ),
    )
    op.create_index("ix_leave_balances_employee_id", "leave_balances", ["employee_id"], unique=False)

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("leave_type_code", sa.String(length=32), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("number_of_days", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column(
            "status",
            leave_request_status,
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["leave_type_code"], ["leave_types.code"]),
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_requests_date_range"),
    )
    op.create_index(
        "ix_leave_requests_employee_dates",
        "leave_requests",
        ["employee_id", "start_date", "end_date"],
        unique=False,
    )
    op.create_index("ix_leave_requests_status", "leave_requests", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_leave_requests_status", table_name="leave_requests")
    op.drop_index("ix_leave_requests_employee_dates", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_index("ix_leave_balances_employee_id", table_name="leave_balances")
    op.drop_table("leave_balances")
    op.drop_table("leave_types")

    bind = op.get_bind()
    leave_request_status.drop(bind, checkfirst=True)
