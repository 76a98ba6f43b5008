# app/payments/checkout.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from app.assignments.ledger import AssignmentLedger
from app.assignments.model import Assignment, Payment
from app.providers.base import CheckoutProvider, CheckoutRequest
from settings import settings

logger = logging.getLogger("tutormatch.checkout")


@dataclass(frozen=True)
class CheckoutStarted:
    assignment: Assignment
    payment: Payment
    session_id: str
    session_url: Optional[str]


def start_checkout(
    ledger: AssignmentLedger,
    provider: CheckoutProvider,
    *,
    assignment_id: UUID,
    student_id: UUID,
    tutor_name: str = "",
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> CheckoutStarted:
    """
    Move the assignment to PAYMENT_PENDING and open a hosted checkout for it.

    The state change happens first so a second call fails on the guard before
    any provider request. A provider failure propagates and the surrounding
    request transaction rolls the state change back.
    """
    assignment, payment = ledger.begin_payment(assignment_id, student_id)

    description = f"Tutoring session with {tutor_name}" if tutor_name else "Tutoring session"
    session = provider.create_checkout_session(
        CheckoutRequest(
            assignment_id=assignment.id,
            amount_cents=assignment.total_fee_cents,
            currency=settings.CHECKOUT_CURRENCY,
            description=description,
            product_name=f"Tutoring Session - {assignment.subject}",
            platform_commission_cents=assignment.platform_commission_cents,
            success_url=success_url or settings.CHECKOUT_SUCCESS_URL,
            cancel_url=cancel_url or settings.CHECKOUT_CANCEL_URL,
        )
    )

    ledger.store.attach_checkout_session(payment.id, session_id=session.session_id, checkout_url=session.url)
    logger.info(
        "checkout_started assignment_id=%s payment_id=%s provider=%s session_id=%s",
        assignment.id,
        payment.id,
        getattr(provider, "name", "?"),
        session.session_id,
    )
    payment = ledger.store.get_payment_by_assignment(assignment.id) or payment
    return CheckoutStarted(
        assignment=assignment,
        payment=payment,
        session_id=session.session_id,
        session_url=session.url,
    )
