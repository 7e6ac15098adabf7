from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import Employee, MonthlySummary, PaymentType
from app.settings import get_settings

_CENT = Decimal("0.01")
_ZERO = Decimal("0")


@dataclass(frozen=True)
class PayrollAmounts:
    payment_type: PaymentType | None
    subtotal: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _decimal(value: object) -> Decimal:
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_subtotal(
    employee: Employee,
    *,
    present_days: int,
    working_days: int,
    worked_hours: float,
    ot_hours: float,
) -> Decimal:
    payment_type = employee.payment_type
    if payment_type == PaymentType.HOURLY:
        rate = _decimal(employee.hourly_rate)
        overtime = _decimal(ot_hours)
        regular = max(_decimal(worked_hours) - overtime, _ZERO)
        multiplier = _decimal(get_settings().overtime_pay_multiplier)
        return regular * rate + overtime * rate * multiplier
    if payment_type == PaymentType.DAILY:
        return Decimal(present_days) * _decimal(employee.daily_rate)
    if payment_type == PaymentType.MONTHLY:
        if working_days <= 0:
            return _ZERO
        return Decimal(present_days) / Decimal(working_days) * _decimal(employee.monthly_rate)
    if payment_type == PaymentType.CONTRACT:
        return _decimal(employee.contract_rate)
    return _ZERO


def calculate_payroll_amounts(
    employee: Employee,
    *,
    present_days: int,
    working_days: int,
    worked_hours: float,
    ot_hours: float,
    tax_percentage: float | Decimal | None = None,
) -> PayrollAmounts:
    """Money owed for one employee-month.

    ``worked_hours`` includes overtime; the hourly formula pays the regular
    share at the base rate and the overtime share at the configured
    multiplier. Tax is added on top of the subtotal.
    """
    if tax_percentage is None:
        tax_percentage = get_settings().default_tax_percentage
    tax_pct = _decimal(tax_percentage)

    subtotal = calculate_subtotal(
        employee,
        present_days=present_days,
        working_days=working_days,
        worked_hours=worked_hours,
        ot_hours=ot_hours,
    )
    tax_amount = subtotal * tax_pct / Decimal(100)
    return PayrollAmounts(
        payment_type=employee.payment_type,
        subtotal=_money(subtotal),
        tax_percentage=_money(tax_pct),
        tax_amount=_money(tax_amount),
        total_amount=_money(subtotal + tax_amount),
    )


def invoice_prefix(year: int, month: int) -> str:
    return f"INV-{year:04d}-{month:02d}-"


def next_invoice_number(db: Session, *, year: int, month: int) -> str:
    prefix = invoice_prefix(year, month)
    latest = db.scalar(
        select(func.max(MonthlySummary.invoice_number)).where(MonthlySummary.invoice_number.like(f"{prefix}%"))
    )
    sequence = 1
    if latest:
        suffix = latest[len(prefix):]
        if suffix.isdigit():
            sequence = int(suffix) + 1
    return f"{prefix}{sequence:04d}"
