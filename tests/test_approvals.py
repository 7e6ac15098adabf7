from __future__ import annotations

import unittest

from app.errors import (
    AlreadySignedError,
    ApiError,
    ImmutableSummaryError,
    NotFoundError,
    StateConflictError,
    ValidationFailedError,
)
from app.models import SummaryStatus
from app.services.approvals import (
    TRANSITIONS,
    SummaryAction,
    _build_transition_table,
    approve,
    bulk_approve,
    compare_and_swap_status,
    next_status,
    reject,
    sign,
    validate_signature,
)

from db_support import PNG_SIGNATURE, add_employee, add_summary, make_session_factory, utc


class TransitionTableTests(unittest.TestCase):
    def test_happy_path(self) -> None:
        status = SummaryStatus.DRAFT
        status = next_status(status, SummaryAction.SIGN)
        self.assertEqual(status, SummaryStatus.SIGNED_BY_STAFF)
        self.assertEqual(next_status(status, SummaryAction.APPROVE), SummaryStatus.APPROVED)
        self.assertEqual(next_status(status, SummaryAction.REJECT), SummaryStatus.REJECTED)
        self.assertEqual(next_status(SummaryStatus.REJECTED, SummaryAction.SIGN), SummaryStatus.SIGNED_BY_STAFF)

    def test_approved_is_terminal(self) -> None:
        for action in SummaryAction:
            self.assertNotIn((SummaryStatus.APPROVED, action), TRANSITIONS)
        with self.assertRaises(StateConflictError):
            next_status(SummaryStatus.APPROVED, SummaryAction.REJECT)
        with self.assertRaises(ImmutableSummaryError):
            next_status(SummaryStatus.APPROVED, SummaryAction.REGENERATE)

    def test_double_sign_is_already_signed(self) -> None:
        with self.assertRaises(AlreadySignedError) as ctx:
            next_status(SummaryStatus.SIGNED_BY_STAFF, SummaryAction.SIGN)
        self.assertEqual(ctx.exception.code, "ALREADY_SIGNED")

    def test_approve_requires_staff_signature_first(self) -> None:
        with self.assertRaises(StateConflictError):
            next_status(SummaryStatus.DRAFT, SummaryAction.APPROVE)

    def test_table_rejects_non_enum_members(self) -> None:
        with self.assertRaises(ValueError):
            _build_transition_table({("DRAFT", SummaryAction.SIGN): SummaryStatus.SIGNED_BY_STAFF})
        with self.assertRaises(ValueError):
            _build_transition_table({(SummaryStatus.APPROVED, SummaryAction.REJECT): SummaryStatus.REJECTED})


class SignatureValidationTests(unittest.TestCase):
    def test_accepts_png_data_uri(self) -> None:
        self.assertEqual(validate_signature(PNG_SIGNATURE), PNG_SIGNATURE)

    def test_rejects_bad_values(self) -> None:
        for value in ("", "   ", "data:image/jpeg;base64,iVBORw0KGgo=", "data:image/png;base64,", "data:image/png;base64,@@@"):
            with self.assertRaises(ValidationFailedError, msg=value):
                validate_signature(value)


class ApprovalFlowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.employee = add_employee(self.db)
        self.other = add_employee(self.db, full_name="Other")
        self.summary = add_summary(self.db, self.employee)

    def tearDown(self) -> None:
        self.db.close()

    def test_sign_then_approve(self) -> None:
        signed = sign(self.db, summary_id=self.summary.id, signature=PNG_SIGNATURE, employee_id=self.employee.id)

        self.assertEqual(signed.status, SummaryStatus.SIGNED_BY_STAFF)
        self.assertEqual(signed.staff_signature, PNG_SIGNATURE)
        self.assertEqual(signed.staff_signed_by, self.employee.id)
        self.assertIsNotNone(signed.staff_signed_at)

        approved = approve(
            self.db,
            summary_id=self.summary.id,
            admin_signature=PNG_SIGNATURE,
            admin_id="payroll-admin",
            remarks="ok",
        )

        self.assertEqual(approved.status, SummaryStatus.APPROVED)
        self.assertEqual(approved.admin_approved_by, "payroll-admin")
        self.assertEqual(approved.admin_remarks, "ok")
        self.assertIsNotNone(approved.admin_approved_at)

    def test_sign_twice_raises_already_signed(self) -> None:
        sign(self.db, summary_id=self.summary.id, signature=PNG_SIGNATURE, employee_id=self.employee.id)

        with self.assertRaises(AlreadySignedError):
            sign(self.db, summary_id=self.summary.id, signature=PNG_SIGNATURE, employee_id=self.employee.id)

    def test_only_owner_can_sign(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            sign(self.db, summary_id=self.summary.id, signature=PNG_SIGNATURE, employee_id=self.other.id)

        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.code, "FORBIDDEN")

    def test_invalid_signature_does_not_change_state(self) -> None:
        with self.assertRaises(ValidationFailedError):
            sign(self.db, summary_id=self.summary.id, signature="not-an-image", employee_id=self.employee.id)

        self.db.refresh(self.summary)
        self.assertEqual(self.summary.status, SummaryStatus.DRAFT)

    def test_reject_requires_remarks_and_keeps_staff_signature(self) -> None:
        sign(self.db, summary_id=self.summary.id, signature=PNG_SIGNATURE, employee_id=self.employee.id)

        with self.assertRaises(ValidationFailedError) as ctx:
            reject(self.db, summary_id=self.summary.id, remarks="   ", admin_id="admin")
        self.assertEqual(ctx.exception.field, "remarks")

        rejected = reject(self.db, summary_id=self.summary.id, remarks="Hours look wrong", admin_id="admin")

        self.assertEqual(rejected.status, SummaryStatus.REJECTED)
        self.assertEqual(rejected.admin_remarks, "Hours look wrong")
        self.assertEqual(rejected.staff_signature, PNG_SIGNATURE)
        self.assertIsNone(rejected.admin_signature)

    def test_resign_after_rejection_clears_admin_fields(self) -> None:
        sign(self.db, summary_id=self.summary.id, signature=PNG_SIGNATURE, employee_id=self.employee.id)
        reject(self.db, summary_id=self.summary.id, remarks="Fix leave", admin_id="admin")

        resigned = sign(self.db, summary_id=self.summary.id, signature=PNG_SIGNATURE, employee_id=self.employee.id)

        self.assertEqual(resigned.status, SummaryStatus.SIGNED_BY_STAFF)
        self.assertIsNone(resigned.admin_remarks)
        self.assertIsNone(resigned.admin_approved_at)
        self.assertIsNone(resigned.admin_approved_by)

    def test_approve_from_draft_is_conflict(self) -> None:
        with self.assertRaises(StateConflictError):
            approve(self.db, summary_id=self.summary.id, admin_signature=PNG_SIGNATURE, admin_id="admin")

    def test_missing_summary(self) -> None:
        with self.assertRaises(NotFoundError):
            sign(self.db, summary_id=404, signature=PNG_SIGNATURE, employee_id=self.employee.id)

    def test_compare_and_swap_loser_raises_conflict(self) -> None:
        sign(self.db, summary_id=self.summary.id, signature=PNG_SIGNATURE, employee_id=self.employee.id)

        # A second request that still observed DRAFT loses the race.
        with self.assertRaises(StateConflictError):
            compare_and_swap_status(
                self.db,
                self.summary,
                observed=SummaryStatus.DRAFT,
                values={"status": SummaryStatus.SIGNED_BY_STAFF, "staff_signed_at": utc(2026, 4, 1)},
            )

        self.db.refresh(self.summary)
        self.assertEqual(self.summary.status, SummaryStatus.SIGNED_BY_STAFF)


class BulkApproveTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        employees = [add_employee(self.db, full_name=f"Worker {index}") for index in range(3)]
        self.signed_a = add_summary(
            self.db, employees[0], status=SummaryStatus.SIGNED_BY_STAFF, staff_signature=PNG_SIGNATURE
        )
        self.signed_b = add_summary(
            self.db, employees[1], status=SummaryStatus.SIGNED_BY_STAFF, staff_signature=PNG_SIGNATURE
        )
        self.draft = add_summary(self.db, employees[2])

    def tearDown(self) -> None:
        self.db.close()

    def test_approves_signed_and_skips_the_rest(self) -> None:
        result = bulk_approve(
            self.db,
            summary_ids=[self.signed_a.id, self.draft.id, self.signed_b.id, 9999],
            admin_signature=PNG_SIGNATURE,
            admin_id="admin",
        )

        self.assertEqual(result.approved_ids, [self.signed_a.id, self.signed_b.id])
        self.assertEqual(result.skipped_ids, [self.draft.id, 9999])
        self.db.refresh(self.draft)
        self.assertEqual(self.draft.status, SummaryStatus.DRAFT)

    def test_repeated_bulk_approve_skips_already_approved(self) -> None:
        bulk_approve(self.db, summary_ids=[self.signed_a.id], admin_signature=PNG_SIGNATURE, admin_id="admin")

        second = bulk_approve(
            self.db,
            summary_ids=[self.signed_a.id],
            admin_signature=PNG_SIGNATURE,
            admin_id="admin",
        )

        self.assertEqual(second.approved_ids, [])
        self.assertEqual(second.skipped_ids, [self.signed_a.id])

    def test_empty_ids_rejected(self) -> None:
        with self.assertRaises(ValidationFailedError):
            bulk_approve(self.db, summary_ids=[], admin_signature=PNG_SIGNATURE, admin_id="admin")


if __name__ == "__main__":
    unittest.main()
