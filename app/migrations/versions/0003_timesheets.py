"""Add project timesheets

Revision ID: 0003_timesheets
Revises: 0002_leave_requests
Create Date: 2026-10-05 01:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0003_timesheets"
down_revision: Union[str, None] = "0002_leave_requests"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

timesheet_status = postgresql.ENUM(
    "Present",
    "Absent",
    "Half-Day",
    name="timesheet_status",
    create_type=False,
)
timesheet_approval_status = postgresql.ENUM(
    "Draft",
    "Submitted",
    "Approved",
    "Rejected",
    name="timesheet_approval_status",
    create_type=False,
)
ot_approval_status = postgresql.ENUM(
    "Pending",
    "Approved",
    "Rejected",
    name="ot_approval_status",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    timesheet_status.create(bind, checkfirst=True)
    timesheet_approval_status.create(bind, checkfirst=True)
    ot_approval_status.create(bind, checkfirst=True)

    op.create_table(
        "timesheets",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("staff_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("check_in", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("overtime_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", timesheet_status, nullable=False, server_default=sa.text("'Present'")),
        sa.Column(
            "approval_status",
            timesheet_approval_status,
            nullable=False,
            server_default=sa.text("'Draft'"),
        ),
        sa.Column("ot_approval_status", ot_approval_status, nullable=True),
        sa.ForeignKeyConstraint(["staff_id"], ["employees.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("staff_id", "work_date", "project_id", name="uq_timesheets_staff_date_project"),
    )
    op.create_index("ix_timesheets_staff_work_date", "timesheets", ["staff_id", "work_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_timesheets_staff_work_date", table_name="timesheets")
    op.drop_table("timesheets")

    bind = op.get_bind()
    ot_approval_status.drop(bind, checkfirst=True)
    timesheet_approval_status.drop(bind, checkfirst=True)
    timesheet_status.drop(bind, checkfirst=True)
