from __future__ import annotations

from datetime import date
import unittest

from sqlalchemy import select

from app.errors import ApiError, InvalidRangeError, NotFoundError, StateConflictError, ValidationFailedError
from app.models import LeaveBalance, LeaveRequestStatus
from app.services.leave_requests import (
    approve_leave_request,
    bulk_approve_leave_requests,
    cancel_leave_request,
    fetch_leave_balances,
    initialize_leave_balances,
    leave_statistics,
    list_leave_requests,
    list_leave_types,
    preview_leave_days,
    reject_leave_request,
    submit_leave_request,
)
from app.services.leaves import aggregate_approved_leave, recount_leave_days

from db_support import add_employee, make_session_factory, seed_leave_types


class PreviewLeaveDaysTests(unittest.TestCase):
    def test_weekends_are_excluded(self) -> None:
        preview = preview_leave_days(date(2026, 3, 6), date(2026, 3, 9))

        self.assertEqual(preview.count, 2)
        self.assertEqual(preview.days, (date(2026, 3, 6), date(2026, 3, 9)))

    def test_inverted_range(self) -> None:
        with self.assertRaises(InvalidRangeError) as ctx:
            preview_leave_days(date(2026, 3, 9), date(2026, 3, 6))

        self.assertEqual(ctx.exception.code, "INVALID_RANGE")


class LeaveRequestLifecycleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        seed_leave_types(self.db)
        self.employee = add_employee(self.db)
        self.colleague = add_employee(self.db, full_name="Colleague")

    def tearDown(self) -> None:
        self.db.close()

    def _balance(self, code: str) -> LeaveBalance | None:
        return self.db.scalar(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == self.employee.id,
                LeaveBalance.leave_type_code == code,
                LeaveBalance.year == 2026,
            )
        )

    def test_submit_computes_working_days(self) -> None:
        leave_request = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="annual",
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 8),
            reason="  Family trip ",
        )

        self.assertEqual(leave_request.status, LeaveRequestStatus.PENDING)
        self.assertEqual(leave_request.leave_type_code, "ANNUAL")
        self.assertEqual(leave_request.number_of_days, 5)
        self.assertEqual(leave_request.reason, "Family trip")

    def test_day_count_agrees_across_submit_recount_and_monthly_aggregate(self) -> None:
        # Friday 6 March to Monday 9 March 2026.
        preview = preview_leave_days(date(2026, 3, 6), date(2026, 3, 9))
        leave_request = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="ANNUAL",
            start_date=date(2026, 3, 6),
            end_date=date(2026, 3, 9),
        )
        approve_leave_request(self.db, leave_request_id=leave_request.id, admin_id="admin")
        self.db.refresh(leave_request)

        with self.assertNoLogs("app.leaves", level="WARNING"):
            aggregate = aggregate_approved_leave(self.db, employee_id=self.employee.id, year=2026, month=3)

        self.assertEqual(leave_request.number_of_days, 2)
        self.assertEqual(preview.count, leave_request.number_of_days)
        self.assertEqual(recount_leave_days(leave_request), leave_request.number_of_days)
        self.assertEqual(aggregate.total_days, leave_request.number_of_days)
        self.assertEqual(aggregate.days, {date(2026, 3, 6), date(2026, 3, 9)})
        self.assertEqual(self._balance("ANNUAL").used_days, 2)

    def test_submit_rejects_weekend_only_range(self) -> None:
        with self.assertRaises(InvalidRangeError) as ctx:
            submit_leave_request(
                self.db,
                employee_id=self.employee.id,
                leave_type_code="SICK",
                start_date=date(2026, 3, 7),
                end_date=date(2026, 3, 8),
            )

        self.assertEqual(ctx.exception.field, "start_date")

    def test_submit_rejects_unknown_type(self) -> None:
        with self.assertRaises(ValidationFailedError) as ctx:
            submit_leave_request(
                self.db,
                employee_id=self.employee.id,
                leave_type_code="SABBATICAL",
                start_date=date(2026, 3, 2),
                end_date=date(2026, 3, 2),
            )

        self.assertEqual(ctx.exception.field, "leave_type_code")

    def test_submit_rejects_unknown_employee(self) -> None:
        with self.assertRaises(NotFoundError):
            submit_leave_request(
                self.db,
                employee_id=404,
                leave_type_code="ANNUAL",
                start_date=date(2026, 3, 2),
                end_date=date(2026, 3, 2),
            )

    def test_submit_rejects_annual_request_above_entitlement(self) -> None:
        # 2..18 March holds 13 working days, the default entitlement is 12.
        with self.assertRaises(ValidationFailedError) as ctx:
            submit_leave_request(
                self.db,
                employee_id=self.employee.id,
                leave_type_code="ANNUAL",
                start_date=date(2026, 3, 2),
                end_date=date(2026, 3, 18),
            )

        self.assertEqual(ctx.exception.field, "number_of_days")

    def test_approve_charges_balance_exactly_once(self) -> None:
        leave_request = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="ANNUAL",
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 6),
        )

        with self.assertLogs("app.leave_requests", level="INFO"):
            approved = approve_leave_request(self.db, leave_request_id=leave_request.id, admin_id="admin")

        self.assertEqual(approved.status, LeaveRequestStatus.APPROVED)
        self.assertEqual(approved.approved_by, "admin")
        self.assertIsNotNone(approved.approved_at)
        balance = self._balance("ANNUAL")
        self.assertEqual(balance.total_days, 12)
        self.assertEqual(balance.used_days, 5)

        with self.assertRaises(StateConflictError):
            approve_leave_request(self.db, leave_request_id=leave_request.id, admin_id="admin")

        self.db.refresh(balance)
        self.assertEqual(balance.used_days, 5)

    def test_second_approval_increments_existing_balance(self) -> None:
        first = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="SICK",
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 3),
        )
        second = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="SICK",
            start_date=date(2026, 4, 6),
            end_date=date(2026, 4, 6),
        )

        approve_leave_request(self.db, leave_request_id=first.id, admin_id="admin")
        approve_leave_request(self.db, leave_request_id=second.id, admin_id="admin")

        balance = self._balance("SICK")
        self.db.refresh(balance)
        self.assertEqual(balance.used_days, 3)
        self.assertEqual(balance.remaining_days, 11)

    def test_unpaid_leave_has_no_balance(self) -> None:
        leave_request = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="UNPAID",
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 31),
        )

        approve_leave_request(self.db, leave_request_id=leave_request.id, admin_id="admin")

        self.assertIsNone(self._balance("UNPAID"))

    def test_reject_requires_reason(self) -> None:
        leave_request = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="ANNUAL",
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 2),
        )

        with self.assertRaises(ValidationFailedError) as ctx:
            reject_leave_request(self.db, leave_request_id=leave_request.id, admin_id="admin", rejection_reason=" ")
        self.assertEqual(ctx.exception.field, "rejection_reason")

        rejected = reject_leave_request(
            self.db,
            leave_request_id=leave_request.id,
            admin_id="admin",
            rejection_reason="Peak season",
        )

        self.assertEqual(rejected.status, LeaveRequestStatus.REJECTED)
        self.assertEqual(rejected.rejection_reason, "Peak season")
        self.assertEqual(rejected.approved_by, "admin")
        self.assertIsNone(self._balance("ANNUAL"))

    def test_cancel_only_by_owner_and_only_while_pending(self) -> None:
        leave_request = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="ANNUAL",
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 2),
        )

        with self.assertRaises(ApiError) as ctx:
            cancel_leave_request(self.db, leave_request_id=leave_request.id, employee_id=self.colleague.id)
        self.assertEqual(ctx.exception.status_code, 403)

        cancelled = cancel_leave_request(self.db, leave_request_id=leave_request.id, employee_id=self.employee.id)
        self.assertEqual(cancelled.status, LeaveRequestStatus.CANCELLED)

        with self.assertRaises(StateConflictError):
            cancel_leave_request(self.db, leave_request_id=leave_request.id, employee_id=self.employee.id)
        with self.assertRaises(StateConflictError):
            approve_leave_request(self.db, leave_request_id=leave_request.id, admin_id="admin")

    def test_list_filters_by_status_and_year(self) -> None:
        march = submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="SICK",
            start_date=date(2026, 3, 2),
            end_date=date(2026, 3, 2),
        )
        submit_leave_request(
            self.db,
            employee_id=self.employee.id,
            leave_type_code="SICK",
            start_date=date(2027, 1, 4),
            end_date=date(2027, 1, 4),
        )
        approve_leave_request(self.db, leave_request_id=march.id, admin_id="admin")

        approved = list_leave_requests(self.db, employee_id=self.employee.id, status=LeaveRequestStatus.APPROVED)
        in_2027 = list_leave_requests(self.db, employee_id=self.employee.id, year=2027)

        self.assertEqual([item.id for item in approved], [march.id])
        self.assertEqual(len(in_2027), 1)
        self.assertEqual(in_2027[0].start_date, date(2027, 1, 4))


class LeaveAdministrationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        seed_leave_types(self.db)
        self.employee = add_employee(self.db)
        self.colleague = add_employee(self.db, full_name="Colleague")
        self.former = add_employee(self.db, full_name="Former", is_active=False)

    def tearDown(self) -> None:
        self.db.close()

    def _submit(self, start: date, end: date, *, code: str = "ANNUAL", employee_id: int | None = None):  # type: ignore[no-untyped-def]
        return submit_leave_request(
            self.db,
            employee_id=employee_id or self.employee.id,
            leave_type_code=code,
            start_date=start,
            end_date=end,
        )

    def _used(self, employee_id: int, code: str) -> float:
        balance = self.db.scalar(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_code == code,
                LeaveBalance.year == 2026,
            )
        )
        self.db.refresh(balance)
        return balance.used_days

    def test_leave_types_are_listed_by_name(self) -> None:
        names = [item.name for item in list_leave_types(self.db)]

        self.assertEqual(names, ["Annual Leave", "Sick Leave", "Unpaid Leave"])

    def test_bulk_approve_charges_each_request_once(self) -> None:
        first = self._submit(date(2026, 3, 2), date(2026, 3, 3))
        second = self._submit(date(2026, 3, 9), date(2026, 3, 11))
        rejected = self._submit(date(2026, 3, 16), date(2026, 3, 16))
        reject_leave_request(self.db, leave_request_id=rejected.id, admin_id="admin", rejection_reason="Busy")

        result = bulk_approve_leave_requests(
            self.db,
            leave_request_ids=[first.id, second.id, first.id, rejected.id, 999],
            admin_id="admin",
        )
        again = bulk_approve_leave_requests(self.db, leave_request_ids=[first.id, second.id], admin_id="admin")

        self.assertEqual(result.approved_ids, [first.id, second.id])
        self.assertEqual(result.skipped_ids, [rejected.id, 999])
        self.assertEqual(again.approved_ids, [])
        self.assertEqual(again.skipped_ids, [first.id, second.id])
        self.assertEqual(self._used(self.employee.id, "ANNUAL"), 5)

    def test_bulk_approve_requires_ids(self) -> None:
        with self.assertRaises(ValidationFailedError) as ctx:
            bulk_approve_leave_requests(self.db, leave_request_ids=[], admin_id="admin")

        self.assertEqual(ctx.exception.field, "leave_request_ids")

    def test_statistics_for_a_year(self) -> None:
        march = self._submit(date(2026, 3, 2), date(2026, 3, 4))
        sick = self._submit(date(2026, 3, 30), date(2026, 4, 2), code="SICK")
        april = self._submit(date(2026, 4, 6), date(2026, 4, 6), employee_id=self.colleague.id)
        self._submit(date(2026, 5, 4), date(2026, 5, 4))
        next_year = self._submit(date(2027, 1, 4), date(2027, 1, 5), code="SICK")
        bulk_approve_leave_requests(
            self.db,
            leave_request_ids=[march.id, sick.id, april.id, next_year.id],
            admin_id="admin",
        )

        stats = leave_statistics(self.db, year=2026)

        self.assertEqual(stats.pending_count, 1)
        by_code = {item.leave_type_code: item for item in stats.usage_by_type}
        self.assertEqual(by_code["ANNUAL"].request_count, 2)
        self.assertEqual(by_code["ANNUAL"].total_days, 4)
        self.assertEqual(by_code["SICK"].request_count, 1)
        self.assertEqual(by_code["SICK"].total_days, 4)
        self.assertEqual(by_code["UNPAID"].request_count, 0)
        self.assertEqual(
            [(item.month, item.request_count, item.total_days) for item in stats.monthly_usage],
            [(3, 2, 7), (4, 1, 1)],
        )

    def test_initialize_balances_creates_missing_rows_once(self) -> None:
        self.db.add(LeaveBalance(employee_id=self.employee.id, leave_type_code="ANNUAL", year=2026, total_days=20, used_days=3))
        self.db.commit()

        with self.assertLogs("app.leave_requests", level="INFO"):
            first = initialize_leave_balances(self.db, year=2026)
        second = initialize_leave_balances(self.db, year=2026)

        self.assertEqual(first.employee_count, 2)
        self.assertEqual(first.created, 3)
        self.assertEqual(second.created, 0)
        rows = self.db.scalars(select(LeaveBalance).where(LeaveBalance.year == 2026)).all()
        by_key = {(row.employee_id, row.leave_type_code): row for row in rows}
        self.assertEqual(len(rows), 4)
        self.assertEqual(by_key[(self.employee.id, "ANNUAL")].total_days, 20)
        self.assertEqual(by_key[(self.employee.id, "ANNUAL")].used_days, 3)
        self.assertEqual(by_key[(self.colleague.id, "SICK")].total_days, 14)
        self.assertNotIn((self.former.id, "ANNUAL"), by_key)
        self.assertNotIn((self.employee.id, "UNPAID"), by_key)

    def test_initialize_balances_for_selected_employees(self) -> None:
        result = initialize_leave_balances(self.db, year=2027, employee_ids=[self.colleague.id])

        self.assertEqual(result.employee_count, 1)
        self.assertEqual(result.created, 2)
        views = fetch_leave_balances(self.db, employee_id=self.colleague.id, year=2027)
        self.assertEqual({item.leave_type_code: item.remaining_days for item in views}["ANNUAL"], 12)


class FetchLeaveBalancesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        seed_leave_types(self.db)
        self.employee = add_employee(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def test_defaults_without_balance_rows(self) -> None:
        views = fetch_leave_balances(self.db, employee_id=self.employee.id, year=2026)

        by_code = {item.leave_type_code: item for item in views}
        self.assertEqual([item.leave_type_code for item in views], ["ANNUAL", "SICK", "UNPAID"])
        self.assertEqual(by_code["ANNUAL"].remaining_days, 12)
        self.assertEqual(by_code["SICK"].remaining_days, 14)
        self.assertIsNone(by_code["UNPAID"].total_days)
        self.assertIsNone(by_code["UNPAID"].remaining_days)

    def test_reflects_stored_usage(self) -> None:
        self.db.add(LeaveBalance(employee_id=self.employee.id, leave_type_code="ANNUAL", year=2026, total_days=15, used_days=4))
        self.db.commit()

        views = fetch_leave_balances(self.db, employee_id=self.employee.id, year=2026)

        annual = next(item for item in views if item.leave_type_code == "ANNUAL")
        self.assertEqual(annual.total_days, 15)
        self.assertEqual(annual.used_days, 4)
        self.assertEqual(annual.remaining_days, 11)

    def test_unknown_employee(self) -> None:
        with self.assertRaises(NotFoundError):
            fetch_leave_balances(self.db, employee_id=999, year=2026)


if __name__ == "__main__":
    unittest.main()
