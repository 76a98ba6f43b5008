# routes/student.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from app.assignments.ledger import AssignmentLedger
from app.payments.checkout import start_checkout
from app.profiles.model import StudentProfile
from app.providers.base import CheckoutProvider
from app.store import Store
from deps.checkout import checkout_provider
from deps.profiles import current_student
from deps.store import get_store
from routes._presenters import assignment_out
from schemas import AssignmentOut, CheckoutSessionRequest, CheckoutSessionResponse, PaymentOut

router = APIRouter(prefix="/v1/student", tags=["student"])


@router.get("/assignments", response_model=List[AssignmentOut])
def my_assignments(student: StudentProfile = Depends(current_student), store: Store = Depends(get_store)):
    return [assignment_out(store, a) for a in store.list_assignments(student_id=student.id)]


@router.get("/payments", response_model=List[PaymentOut])
def my_payments(student: StudentProfile = Depends(current_student), store: Store = Depends(get_store)):
    return [PaymentOut.model_validate(p) for p in store.list_payments(student_id=student.id)]


@router.post("/payments/checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    body: CheckoutSessionRequest,
    student: StudentProfile = Depends(current_student),
    store: Store = Depends(get_store),
    provider: CheckoutProvider = Depends(checkout_provider),
):
    assignment = store.get_assignment(body.assignment_id)
    tutor = store.get_tutor_profile(assignment.tutor_id) if assignment else None

    started = start_checkout(
        AssignmentLedger(store),
        provider,
        assignment_id=body.assignment_id,
        student_id=student.id,
        tutor_name=tutor.name if tutor else "",
    )
    return CheckoutSessionResponse(
        assignment_id=started.assignment.id,
        status=started.assignment.status,
        session_id=started.session_id,
        session_url=started.session_url,
    )
