"""Initial workforce schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-05 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

hours_source = postgresql.ENUM(
    "ATTENDANCE",
    "TIMESHEET",
    name="hours_source",
    create_type=False,
)
payment_type = postgresql.ENUM(
    "hourly",
    "daily",
    "monthly",
    "contract",
    name="payment_type",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    hours_source.create(bind, checkfirst=True)
    payment_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("hours_source", hours_source, nullable=False, server_default=sa.text("'ATTENDANCE'")),
        sa.Column("payment_type", payment_type, nullable=True),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("daily_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("monthly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("contract_rate", sa.Numeric(10, 2), nullable=True),
        sa.UniqueConstraint("email", name="uq_employees_email"),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    op.create_table(
        "project_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column(
            "assigned_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("removed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "project_id", name="uq_project_assignments_employee_project"),
    )
    op.create_index(
        "ix_project_assignments_employee_id",
        "project_assignments",
        ["employee_id"],
        unique=False,
    )

    op.create_table(
        "attendance_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "ix_attendance_events_employee_check_in",
        "attendance_events",
        ["employee_id", "check_in_time"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_attendance_events_employee_check_in", table_name="attendance_events")
    op.drop_table("attendance_events")
    op.drop_index("ix_project_assignments_employee_id", table_name="project_assignments")
    op.drop_table("project_assignments")
    op.drop_table("projects")
    op.drop_table("employees")

    bind = op.get_bind()
    payment_type.drop(bind, checkfirst=True)
    hours_source.drop(bind, checkfirst=True)
