# app/payments/reconciliation.py
"""
Applies payment processor outcomes to assignments.

Processors deliver events at least once, so every handler here tolerates
replays: a success for an assignment that is already IN_PROGRESS or
COMPLETED, or a failure for one already CANCELED, is acknowledged without
touching anything.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from app.assignments import state_machine as sm
from app.assignments.ledger import AssignmentLedger
from app.errors import ConflictError, InvalidStateError

logger = logging.getLogger("tutormatch.reconcile")

APPLIED = "APPLIED"
IGNORED = "IGNORED"


@dataclass(frozen=True)
class ReconcileOutcome:
    result: str
    assignment_id: Optional[UUID]
    status_before: Optional[str] = None
    status_after: Optional[str] = None
    reason: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.result == APPLIED


class PaymentReconciler:
    def __init__(self, ledger: AssignmentLedger):
        self.ledger = ledger

    def _ignored(self, assignment_id, status, reason) -> ReconcileOutcome:
        return ReconcileOutcome(
            result=IGNORED,
            assignment_id=assignment_id,
            status_before=status,
            status_after=status,
            reason=reason,
        )

    def payment_succeeded(
        self,
        assignment_id: UUID,
        *,
        amount_cents: int,
        external_ref: Optional[str],
    ) -> ReconcileOutcome:
        assignment = self.ledger.store.get_assignment(assignment_id)
        if assignment is None:
            logger.warning("payment_success_unknown_assignment assignment_id=%s external_ref=%s", assignment_id, external_ref)
            return self._ignored(assignment_id, None, "ASSIGNMENT_NOT_FOUND")

        if assignment.status in (sm.IN_PROGRESS, sm.COMPLETED):
            return self._ignored(assignment_id, assignment.status, f"ALREADY_{assignment.status}")

        if assignment.status != sm.PAYMENT_PENDING:
            # money moved for an assignment that can't take it; needs a manual refund
            logger.warning(
                "payment_success_not_payable assignment_id=%s status=%s external_ref=%s amount_cents=%s",
                assignment_id,
                assignment.status,
                external_ref,
                amount_cents,
            )
            return self._ignored(assignment_id, assignment.status, f"NOT_PAYABLE_{assignment.status}")

        try:
            updated = self.ledger.confirm_payment(assignment_id, amount_cents, external_ref)
        except (ConflictError, InvalidStateError) as e:
            current = self.ledger.store.get_assignment(assignment_id)
            status = current.status if current else None
            logger.info("payment_success_lost_race assignment_id=%s status=%s error=%s", assignment_id, status, e.kind)
            return self._ignored(assignment_id, status, "CONFLICT")

        return ReconcileOutcome(
            result=APPLIED,
            assignment_id=assignment_id,
            status_before=sm.PAYMENT_PENDING,
            status_after=updated.status,
        )

    def payment_failed(self, assignment_id: UUID, *, reason: str) -> ReconcileOutcome:
        assignment = self.ledger.store.get_assignment(assignment_id)
        if assignment is None:
            return self._ignored(assignment_id, None, "ASSIGNMENT_NOT_FOUND")

        if assignment.status == sm.CANCELED:
            return self._ignored(assignment_id, assignment.status, "ALREADY_CANCELED")

        if assignment.status != sm.PAYMENT_PENDING:
            return self._ignored(assignment_id, assignment.status, f"NOT_PENDING_{assignment.status}")

        try:
            updated = self.ledger.fail_payment(assignment_id, reason)
        except (ConflictError, InvalidStateError) as e:
            current = self.ledger.store.get_assignment(assignment_id)
            status = current.status if current else None
            logger.info("payment_failure_lost_race assignment_id=%s status=%s error=%s", assignment_id, status, e.kind)
            return self._ignored(assignment_id, status, "CONFLICT")

        return ReconcileOutcome(
            result=APPLIED,
            assignment_id=assignment_id,
            status_before=sm.PAYMENT_PENDING,
            status_after=updated.status,
        )
