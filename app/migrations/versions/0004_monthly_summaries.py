"""Add monthly summaries

Revision ID: 0004_monthly_summaries
Revises: 0003_timesheets
Create Date: 2026-10-06 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0004_monthly_summaries"
down_revision: Union[str, None] = "0003_timesheets"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

monthly_summary_status = postgresql.ENUM(
    "DRAFT",
    "SIGNED_BY_STAFF",
    "APPROVED",
    "REJECTED",
    name="monthly_summary_status",
    create_type=False,
)
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
    monthly_summary_status.create(bind, checkfirst=True)

    op.create_table(
        "monthly_summaries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("status", monthly_summary_status, nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("hours_source", hours_source, nullable=False, server_default=sa.text("'ATTENDANCE'")),
        sa.Column("total_working_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("present_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_worked_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_ot_hours", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("approved_leaves", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("absent_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "project_breakdown",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("staff_signature", sa.Text(), nullable=True),
        sa.Column("staff_signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("staff_signed_by", sa.Integer(), nullable=True),
        sa.Column("admin_signature", sa.Text(), nullable=True),
        sa.Column("admin_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_approved_by", sa.String(length=255), nullable=True),
        sa.Column("admin_remarks", sa.Text(), nullable=True),
        sa.Column("payment_type", payment_type, nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("invoice_number", sa.String(length=32), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
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
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("employee_id", "month", "year", name="uq_monthly_summaries_employee_month_year"),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="ck_monthly_summaries_month"),
        sa.CheckConstraint("absent_days >= 0", name="ck_monthly_summaries_absent_days"),
    )
    op.create_index("ix_monthly_summaries_year_month", "monthly_summaries", ["year", "month"], unique=False)
    op.create_index("ix_monthly_summaries_status", "monthly_summaries", ["status"], unique=False)
    op.create_index(
        "ix_monthly_summaries_invoice_number",
        "monthly_summaries",
        ["invoice_number"],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("ix_monthly_summaries_invoice_number", table_name="monthly_summaries")
    op.drop_index("ix_monthly_summaries_status", table_name="monthly_summaries")
    op.drop_index("ix_monthly_summaries_year_month", table_name="monthly_summaries")
    op.drop_table("monthly_summaries")

    bind = op.get_bind()
    monthly_summary_status.drop(bind, checkfirst=True)
