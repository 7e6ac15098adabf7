"""Staff signature and admin approval of monthly summaries.

Every transition is looked up in ``TRANSITIONS`` and then applied with a
compare-and-swap UPDATE keyed on the status the caller observed, so two
racing requests can never both win.
"""

from __future__ import annotations

import base64
import binascii
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import (
    AlreadySignedError,
    ApiError,
    ImmutableSummaryError,
    NotFoundError,
    StateConflictError,
    ValidationFailedError,
)
from app.models import MonthlySummary, SummaryStatus

SIGNATURE_PREFIX = "data:image/png;base64,"


class SummaryAction(str, enum.Enum):
    SIGN = "SIGN"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REGENERATE = "REGENERATE"


def _build_transition_table(
    raw: Mapping[tuple[Any, Any], Any],
) -> dict[tuple[SummaryStatus, SummaryAction], SummaryStatus]:
    table: dict[tuple[SummaryStatus, SummaryAction], SummaryStatus] = {}
    for (current, action), target in raw.items():
        if not isinstance(current, SummaryStatus) or not isinstance(target, SummaryStatus):
            raise ValueError(f"Transition states must be SummaryStatus members: {current!r} -> {target!r}")
        if not isinstance(action, SummaryAction):
            raise ValueError(f"Transition action must be a SummaryAction member: {action!r}")
        if current == SummaryStatus.APPROVED:
            raise ValueError("APPROVED is terminal and cannot have outgoing transitions")
        table[(current, action)] = target
    return table


TRANSITIONS = _build_transition_table(
    {
        (SummaryStatus.DRAFT, SummaryAction.SIGN): SummaryStatus.SIGNED_BY_STAFF,
        (SummaryStatus.REJECTED, SummaryAction.SIGN): SummaryStatus.SIGNED_BY_STAFF,
        (SummaryStatus.SIGNED_BY_STAFF, SummaryAction.APPROVE): SummaryStatus.APPROVED,
        (SummaryStatus.SIGNED_BY_STAFF, SummaryAction.REJECT): SummaryStatus.REJECTED,
        (SummaryStatus.DRAFT, SummaryAction.REGENERATE): SummaryStatus.DRAFT,
        (SummaryStatus.REJECTED, SummaryAction.REGENERATE): SummaryStatus.DRAFT,
    }
)


@dataclass
class BulkApprovalResult:
    approved_ids: list[int] = field(default_factory=list)
    skipped_ids: list[int] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_status(current: SummaryStatus, action: SummaryAction) -> SummaryStatus:
    target = TRANSITIONS.get((current, action))
    if target is not None:
        return target
    if action == SummaryAction.SIGN and current == SummaryStatus.SIGNED_BY_STAFF:
        raise AlreadySignedError()
    if action == SummaryAction.REGENERATE:
        raise ImmutableSummaryError(current.value)
    raise StateConflictError(f"Cannot {action.value.lower()} a monthly summary in status {current.value}.")


def validate_signature(signature: str | None, *, field_name: str = "signature") -> str:
    value = (signature or "").strip()
    if not value.startswith(SIGNATURE_PREFIX):
        raise ValidationFailedError("Signature must be a PNG data URI.", field=field_name)
    payload = value[len(SIGNATURE_PREFIX):]
    if not payload:
        raise ValidationFailedError("Signature image is empty.", field=field_name)
    try:
        decoded = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationFailedError("Signature payload is not valid base64.", field=field_name) from exc
    if not decoded:
        raise ValidationFailedError("Signature image is empty.", field=field_name)
    return value


def _load_summary(db: Session, summary_id: int) -> MonthlySummary:
    summary = db.get(MonthlySummary, summary_id)
    if summary is None:
        raise NotFoundError("Monthly summary not found.")
    return summary


def compare_and_swap_status(
    db: Session,
    summary: MonthlySummary,
    *,
    observed: SummaryStatus,
    values: dict[str, Any],
) -> MonthlySummary:
    try:
        result = db.execute(
            update(MonthlySummary)
            .where(MonthlySummary.id == summary.id, MonthlySummary.status == observed)
            .values(**values, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            raise StateConflictError("Monthly summary was changed by another request. Reload and try again.")
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise StateConflictError("Monthly summary update conflicts with another request. Try again.") from exc
    db.refresh(summary)
    return summary


def sign(db: Session, *, summary_id: int, signature: str, employee_id: int) -> MonthlySummary:
    summary = _load_summary(db, summary_id)
    if summary.employee_id != employee_id:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Only the employee can sign this summary.")
    signature = validate_signature(signature)
    observed = summary.status
    target = next_status(observed, SummaryAction.SIGN)

    return compare_and_swap_status(
        db,
        summary,
        observed=observed,
        values={
            "status": target,
            "staff_signature": signature,
            "staff_signed_at": _utcnow(),
            "staff_signed_by": employee_id,
            "admin_signature": None,
            "admin_approved_at": None,
            "admin_approved_by": None,
            "admin_remarks": None,
        },
    )


def approve(
    db: Session,
    *,
    summary_id: int,
    admin_signature: str,
    admin_id: str,
    remarks: str | None = None,
) -> MonthlySummary:
    summary = _load_summary(db, summary_id)
    admin_signature = validate_signature(admin_signature, field_name="admin_signature")
    observed = summary.status
    target = next_status(observed, SummaryAction.APPROVE)

    return compare_and_swap_status(
        db,
        summary,
        observed=observed,
        values={
            "status": target,
            "admin_signature": admin_signature,
            "admin_approved_at": _utcnow(),
            "admin_approved_by": admin_id,
            "admin_remarks": (remarks or "").strip() or None,
        },
    )


def reject(db: Session, *, summary_id: int, remarks: str, admin_id: str) -> MonthlySummary:
    summary = _load_summary(db, summary_id)
    cleaned_remarks = (remarks or "").strip()
    if not cleaned_remarks:
        raise ValidationFailedError("Remarks are required when rejecting a summary.", field="remarks")
    observed = summary.status
    target = next_status(observed, SummaryAction.REJECT)

    # admin_approved_at doubles as the rejection timestamp; staff signature stays.
    return compare_and_swap_status(
        db,
        summary,
        observed=observed,
        values={
            "status": target,
            "admin_signature": None,
            "admin_approved_at": _utcnow(),
            "admin_approved_by": admin_id,
            "admin_remarks": cleaned_remarks,
        },
    )


def bulk_approve(
    db: Session,
    *,
    summary_ids: Iterable[int],
    admin_signature: str,
    admin_id: str,
    remarks: str | None = None,
) -> BulkApprovalResult:
    requested = list(dict.fromkeys(int(item) for item in summary_ids))
    if not requested:
        raise ValidationFailedError("At least one summary id is required.", field="summary_ids")
    admin_signature = validate_signature(admin_signature, field_name="admin_signature")

    approved_at = _utcnow()
    db.execute(
        update(MonthlySummary)
        .where(
            MonthlySummary.id.in_(requested),
            MonthlySummary.status == SummaryStatus.SIGNED_BY_STAFF,
        )
        .values(
            status=SummaryStatus.APPROVED,
            admin_signature=admin_signature,
            admin_approved_at=approved_at,
            admin_approved_by=admin_id,
            admin_remarks=(remarks or "").strip() or None,
            updated_at=approved_at,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()

    approved = set(
        db.scalars(
            select(MonthlySummary.id).where(
                MonthlySummary.id.in_(requested),
                MonthlySummary.status == SummaryStatus.APPROVED,
                MonthlySummary.admin_approved_at == approved_at,
                MonthlySummary.admin_approved_by == admin_id,
            )
        ).all()
    )
    return BulkApprovalResult(
        approved_ids=[item for item in requested if item in approved],
        skipped_ids=[item for item in requested if item not in approved],
    )
