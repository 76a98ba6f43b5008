# app/assignments/ledger.py
"""
Assignment lifecycle.

The ledger owns every status change of an assignment. Each operation reads
the row, checks ownership and the source state, then issues one conditional
update through the store. A conditional update that touches no row means a
concurrent request moved the assignment first; that surfaces as
`ConflictError` and nothing is overwritten.

Ownership mismatches are reported as `NotFoundError`.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from app.assignments import state_machine as sm
from app.assignments.model import Assignment, Payment
from app.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.payouts.model import Payout
from app.store import Store
from services import metrics

logger = logging.getLogger("tutormatch.ledger")

PAYMENT_TIMEOUT_REASON = "PAYMENT_TIMEOUT"

# money columns are bigint
MAX_CENTS = 2**63 - 1


def compute_commission(total_fee_cents: int, tutor_fee_cents: int) -> int:
    if isinstance(total_fee_cents, bool) or not isinstance(total_fee_cents, int):
        raise ValidationError("totalFeeToStudent must be an integer amount in cents")
    if isinstance(tutor_fee_cents, bool) or not isinstance(tutor_fee_cents, int):
        raise ValidationError("adminSetTutorFee must be an integer amount in cents")
    if total_fee_cents <= 0:
        raise ValidationError("totalFeeToStudent must be greater than zero")
    if tutor_fee_cents < 0:
        raise ValidationError("adminSetTutorFee cannot be negative")
    if total_fee_cents > MAX_CENTS:
        raise ValidationError("totalFeeToStudent is out of range")
    if tutor_fee_cents > total_fee_cents:
        raise ValidationError("Tutor fee cannot exceed total fee")
    return total_fee_cents - tutor_fee_cents


class AssignmentLedger:
    def __init__(self, store: Store, *, actor_user_id: Optional[UUID] = None):
        self.store = store
        self.actor_user_id = actor_user_id

    # ------------------------------------------------------
    # internals
    # ------------------------------------------------------

    def _load(self, assignment_id: UUID) -> Assignment:
        assignment = self.store.get_assignment(assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment not found")
        return assignment

    def _transition(
        self,
        assignment: Assignment,
        to_status: str,
        *,
        expected: tuple[str, ...],
        cancel_reason: Optional[str] = None,
    ) -> Assignment:
        if assignment.status not in expected:
            raise InvalidStateError(
                f"Assignment is {assignment.status}; expected {' or '.join(expected)}"
            )
        sm.assert_transition(assignment.status, to_status)

        ok = self.store.transition_assignment(
            assignment.id,
            from_status=assignment.status,
            to_status=to_status,
            cancel_reason=cancel_reason,
        )
        if not ok:
            logger.info(
                "assignment_transition_lost assignment_id=%s from=%s to=%s",
                assignment.id,
                assignment.status,
                to_status,
            )
            raise ConflictError("Assignment was modified by a concurrent request")

        logger.info(
            "assignment_transition assignment_id=%s from=%s to=%s",
            assignment.id,
            assignment.status,
            to_status,
        )
        metrics.increment_assignment_transition(assignment.status, to_status)
        return self._load(assignment.id)

    def _audit(self, action: str, target_id: Optional[UUID], **metadata) -> None:
        if self.actor_user_id is None:
            return
        self.store.write_audit_log(
            actor_user_id=self.actor_user_id,
            action=action,
            target_id=str(target_id) if target_id else None,
            metadata=metadata,
        )

    # ------------------------------------------------------
    # admin
    # ------------------------------------------------------

    def create_assignment(
        self,
        *,
        student_id: UUID,
        tutor_id: UUID,
        subject: str,
        total_fee_cents: int,
        tutor_fee_cents: int,
    ) -> Assignment:
        subject = (subject or "").strip()
        if not subject:
            raise ValidationError("subject is required")
        commission = compute_commission(total_fee_cents, tutor_fee_cents)

        if self.store.get_student_profile(student_id) is None:
            raise NotFoundError("Student not found")
        if self.store.get_tutor_profile(tutor_id) is None:
            raise NotFoundError("Tutor not found")

        assignment = self.store.insert_assignment(
            student_id=student_id,
            tutor_id=tutor_id,
            subject=subject,
            total_fee_cents=total_fee_cents,
            tutor_fee_cents=tutor_fee_cents,
            platform_commission_cents=commission,
            status=sm.PENDING_OFFER,
        )
        logger.info(
            "assignment_created assignment_id=%s total_fee_cents=%s tutor_fee_cents=%s commission_cents=%s",
            assignment.id,
            total_fee_cents,
            tutor_fee_cents,
            commission,
        )
        self._audit("ASSIGNMENT_CREATED", assignment.id, commission_cents=commission)
        return assignment

    def complete_assignment(self, assignment_id: UUID) -> tuple[Assignment, Payout]:
        """
        IN_PROGRESS -> COMPLETED, then record the tutor payout.

        Re-running on an already COMPLETED assignment only makes sure the
        payout exists; it never creates a second one.
        """
        assignment = self._load(assignment_id)
        if assignment.status != sm.COMPLETED:
            assignment = self._transition(assignment, sm.COMPLETED, expected=(sm.IN_PROGRESS,))
            self._audit("ASSIGNMENT_COMPLETED", assignment.id)

        payout, created = self.store.insert_payout_if_absent(
            assignment_id=assignment.id,
            tutor_id=assignment.tutor_id,
            amount_cents=assignment.tutor_fee_cents,
        )
        if created:
            logger.info(
                "payout_created payout_id=%s assignment_id=%s amount_cents=%s",
                payout.id,
                assignment.id,
                payout.amount_cents,
            )
            metrics.increment_payout_created()
        return assignment, payout

    def cancel(self, assignment_id: UUID, reason: str) -> Assignment:
        assignment = self._load(assignment_id)
        if sm.is_terminal(assignment.status):
            raise InvalidStateError(f"Assignment is already {assignment.status}")

        from_status = assignment.status
        assignment = self._transition(
            assignment,
            sm.CANCELED,
            expected=(from_status,),
            cancel_reason=reason,
        )
        if from_status == sm.PAYMENT_PENDING:
            self.store.mark_payment_failed(assignment.id, reason=reason)
        self._audit("ASSIGNMENT_CANCELED", assignment.id, reason=reason, from_status=from_status)
        return assignment

    # ------------------------------------------------------
    # tutor
    # ------------------------------------------------------

    def _load_for_tutor(self, assignment_id: UUID, tutor_id: UUID) -> Assignment:
        assignment = self._load(assignment_id)
        if assignment.tutor_id != tutor_id:
            raise NotFoundError("Assignment not found")
        return assignment

    def accept_offer(self, assignment_id: UUID, tutor_id: UUID) -> Assignment:
        assignment = self._load_for_tutor(assignment_id, tutor_id)
        return self._transition(assignment, sm.TUTOR_ACCEPTED, expected=(sm.PENDING_OFFER,))

    def decline_offer(self, assignment_id: UUID, tutor_id: UUID) -> Assignment:
        assignment = self._load_for_tutor(assignment_id, tutor_id)
        return self._transition(assignment, sm.TUTOR_DECLINED, expected=(sm.PENDING_OFFER,))

    # ------------------------------------------------------
    # student / payment
    # ------------------------------------------------------

    def begin_payment(self, assignment_id: UUID, student_id: UUID) -> tuple[Assignment, Payment]:
        assignment = self._load(assignment_id)
        if assignment.student_id != student_id:
            raise NotFoundError("Assignment not found")

        assignment = self._transition(assignment, sm.PAYMENT_PENDING, expected=(sm.TUTOR_ACCEPTED,))
        payment = self.store.insert_payment(
            assignment_id=assignment.id,
            amount_cents=assignment.total_fee_cents,
        )
        return assignment, payment

    def confirm_payment(
        self,
        assignment_id: UUID,
        amount_cents: int,
        external_ref: Optional[str],
    ) -> Assignment:
        assignment = self._load(assignment_id)
        assignment = self._transition(assignment, sm.IN_PROGRESS, expected=(sm.PAYMENT_PENDING,))

        mismatch = int(amount_cents) != assignment.total_fee_cents
        if mismatch:
            logger.warning(
                "payment_amount_mismatch assignment_id=%s charged_cents=%s expected_cents=%s external_ref=%s",
                assignment.id,
                amount_cents,
                assignment.total_fee_cents,
                external_ref,
            )
            metrics.increment_payment_amount_mismatch()

        self.store.mark_payment_succeeded(
            assignment.id,
            amount_cents=int(amount_cents),
            platform_fee_cents=assignment.platform_commission_cents,
            external_ref=external_ref,
            amount_mismatch=mismatch,
        )
        return assignment

    def fail_payment(self, assignment_id: UUID, reason: str) -> Assignment:
        assignment = self._load(assignment_id)
        assignment = self._transition(
            assignment,
            sm.CANCELED,
            expected=(sm.PAYMENT_PENDING,),
            cancel_reason=reason,
        )
        self.store.mark_payment_failed(assignment.id, reason=reason)
        return assignment

    def expire_stale_payments(self, *, created_before: datetime) -> list[UUID]:
        """Cancel assignments whose checkout has been pending since before `created_before`."""
        expired: list[UUID] = []
        for assignment_id in self.store.list_stale_payment_assignments(created_before=created_before):
            try:
                self.fail_payment(assignment_id, PAYMENT_TIMEOUT_REASON)
            except (InvalidStateError, ConflictError):
                # paid or canceled between the scan and the update
                continue
            expired.append(assignment_id)

        if expired:
            logger.info("payments_expired count=%s cutoff=%s", len(expired), created_before.isoformat())
            self._audit("PAYMENTS_EXPIRED", None, assignment_ids=[str(a) for a in expired])
        return expired
