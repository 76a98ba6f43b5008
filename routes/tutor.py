# routes/tutor.py
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from app.assignments import state_machine as sm
from app.assignments.ledger import AssignmentLedger
from app.profiles.model import TutorProfile
from app.store import Store
from deps.profiles import current_tutor
from deps.store import get_store
from routes._presenters import assignment_out
from schemas import AssignmentOut, PayoutOut

router = APIRouter(prefix="/v1/tutor", tags=["tutor"])


@router.get("/assignments/offers", response_model=List[AssignmentOut])
def my_offers(tutor: TutorProfile = Depends(current_tutor), store: Store = Depends(get_store)):
    offers = store.list_assignments(tutor_id=tutor.id, statuses=[sm.PENDING_OFFER])
    return [assignment_out(store, a, with_payment=False) for a in offers]


@router.get("/assignments", response_model=List[AssignmentOut])
def my_assignments(tutor: TutorProfile = Depends(current_tutor), store: Store = Depends(get_store)):
    rows = store.list_assignments(tutor_id=tutor.id, exclude_statuses=[sm.PENDING_OFFER])
    return [assignment_out(store, a) for a in rows]


@router.post("/assignments/{assignment_id}/accept", response_model=AssignmentOut)
def accept_offer(
    assignment_id: UUID,
    tutor: TutorProfile = Depends(current_tutor),
    store: Store = Depends(get_store),
):
    assignment = AssignmentLedger(store).accept_offer(assignment_id, tutor.id)
    return assignment_out(store, assignment, with_payment=False)


@router.post("/assignments/{assignment_id}/decline", response_model=AssignmentOut)
def decline_offer(
    assignment_id: UUID,
    tutor: TutorProfile = Depends(current_tutor),
    store: Store = Depends(get_store),
):
    assignment = AssignmentLedger(store).decline_offer(assignment_id, tutor.id)
    return assignment_out(store, assignment, with_payment=False)


@router.get("/payouts", response_model=List[PayoutOut])
def my_payouts(tutor: TutorProfile = Depends(current_tutor), store: Store = Depends(get_store)):
    return [PayoutOut.model_validate(p) for p in store.list_payouts(tutor_id=tutor.id)]
