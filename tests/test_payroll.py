from __future__ import annotations

from decimal import Decimal
import unittest

from app.models import Employee, PaymentType
from app.services.payroll import calculate_payroll_amounts, next_invoice_number

from db_support import add_employee, add_summary, make_session_factory


def _employee(payment_type: PaymentType | None, **rates: Decimal) -> Employee:
    return Employee(full_name="Rates", payment_type=payment_type, **rates)


class CalculatePayrollAmountsTests(unittest.TestCase):
    def test_hourly_pays_overtime_at_multiplier(self) -> None:
        employee = _employee(PaymentType.HOURLY, hourly_rate=Decimal("10.00"))

        amounts = calculate_payroll_amounts(
            employee,
            present_days=2,
            working_days=22,
            worked_hours=18,
            ot_hours=2,
            tax_percentage=7,
        )

        self.assertEqual(amounts.subtotal, Decimal("190.00"))
        self.assertEqual(amounts.tax_amount, Decimal("13.30"))
        self.assertEqual(amounts.total_amount, Decimal("203.30"))

    def test_daily_pays_per_present_day(self) -> None:
        employee = _employee(PaymentType.DAILY, daily_rate=Decimal("85.50"))

        amounts = calculate_payroll_amounts(employee, present_days=4, working_days=22, worked_hours=0, ot_hours=0)

        self.assertEqual(amounts.subtotal, Decimal("342.00"))
        self.assertEqual(amounts.tax_percentage, Decimal("0.00"))
        self.assertEqual(amounts.total_amount, Decimal("342.00"))

    def test_monthly_is_prorated_and_rounded_half_up(self) -> None:
        employee = _employee(PaymentType.MONTHLY, monthly_rate=Decimal("3000.00"))

        amounts = calculate_payroll_amounts(employee, present_days=20, working_days=22, worked_hours=0, ot_hours=0)

        self.assertEqual(amounts.subtotal, Decimal("2727.27"))

    def test_monthly_with_no_working_days_is_zero(self) -> None:
        employee = _employee(PaymentType.MONTHLY, monthly_rate=Decimal("3000.00"))

        amounts = calculate_payroll_amounts(employee, present_days=0, working_days=0, worked_hours=0, ot_hours=0)

        self.assertEqual(amounts.subtotal, Decimal("0.00"))

    def test_contract_is_flat(self) -> None:
        employee = _employee(PaymentType.CONTRACT, contract_rate=Decimal("5000.00"))

        amounts = calculate_payroll_amounts(employee, present_days=1, working_days=22, worked_hours=3, ot_hours=0)

        self.assertEqual(amounts.subtotal, Decimal("5000.00"))

    def test_missing_payment_type_is_zero(self) -> None:
        amounts = calculate_payroll_amounts(_employee(None), present_days=5, working_days=22, worked_hours=40, ot_hours=0)

        self.assertIsNone(amounts.payment_type)
        self.assertEqual(amounts.total_amount, Decimal("0.00"))


class NextInvoiceNumberTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()

    def tearDown(self) -> None:
        self.db.close()

    def test_sequence_is_per_month(self) -> None:
        self.assertEqual(next_invoice_number(self.db, year=2026, month=3), "INV-2026-03-0001")

        first = add_employee(self.db, full_name="First")
        second = add_employee(self.db, full_name="Second")
        add_summary(self.db, first, invoice_number="INV-2026-03-0001")
        add_summary(self.db, second, invoice_number="INV-2026-03-0002")
        add_summary(self.db, first, month=4, invoice_number="INV-2026-04-0007")

        self.assertEqual(next_invoice_number(self.db, year=2026, month=3), "INV-2026-03-0003")
        self.assertEqual(next_invoice_number(self.db, year=2026, month=4), "INV-2026-04-0008")
        self.assertEqual(next_invoice_number(self.db, year=2026, month=5), "INV-2026-05-0001")


if __name__ == "__main__":
    unittest.main()
