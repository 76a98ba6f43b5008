# routes/admin.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from app.assignments import state_machine as sm
from app.assignments.ledger import AssignmentLedger
from app.payouts.service import mark_payout_paid
from app.store import Store
from deps.auth import CurrentUser, require_admin
from deps.store import get_store
from routes._presenters import assignment_out, user_out
from schemas import (
    AssignmentCreateRequest,
    AssignmentOut,
    CancelRequest,
    CompleteResponse,
    ExpirePendingResponse,
    PaymentOut,
    PayoutOut,
    StatsResponse,
    StudentListItem,
    StudentProfileOut,
    TutorListItem,
    TutorProfileOut,
    UserOut,
)
from settings import settings

router = APIRouter(prefix="/v1/admin", tags=["admin"])


def _ledger(store: Store, admin: CurrentUser) -> AssignmentLedger:
    return AssignmentLedger(store, actor_user_id=admin.user_id)


# -----------------------------
# Directory
# -----------------------------

@router.get("/users", response_model=List[UserOut])
def list_users(admin: CurrentUser = Depends(require_admin), store: Store = Depends(get_store)):
    return [user_out(store, u) for u in store.list_users()]


@router.get("/students", response_model=List[StudentListItem])
def list_students(admin: CurrentUser = Depends(require_admin), store: Store = Depends(get_store)):
    return [
        StudentListItem(**StudentProfileOut.model_validate(p).model_dump(), email=u.email)
        for u, p in store.list_students()
    ]


@router.get("/tutors", response_model=List[TutorListItem])
def list_tutors(admin: CurrentUser = Depends(require_admin), store: Store = Depends(get_store)):
    return [
        TutorListItem(**TutorProfileOut.model_validate(p).model_dump(), email=u.email)
        for u, p in store.list_tutors()
    ]


# -----------------------------
# Assignments
# -----------------------------

@router.get("/assignments", response_model=List[AssignmentOut])
def list_assignments(admin: CurrentUser = Depends(require_admin), store: Store = Depends(get_store)):
    student_names = {p.id: p.name for _, p in store.list_students()}
    tutor_names = {p.id: p.name for _, p in store.list_tutors()}
    return [
        assignment_out(store, a, student_names=student_names, tutor_names=tutor_names)
        for a in store.list_assignments()
    ]


@router.post("/assignments", response_model=AssignmentOut, status_code=201)
def create_assignment(
    body: AssignmentCreateRequest,
    admin: CurrentUser = Depends(require_admin),
    store: Store = Depends(get_store),
):
    assignment = _ledger(store, admin).create_assignment(
        student_id=body.student_id,
        tutor_id=body.tutor_id,
        subject=body.subject,
        total_fee_cents=body.total_fee_cents,
        tutor_fee_cents=body.tutor_fee_cents,
    )
    return assignment_out(store, assignment, with_payment=False)


@router.post("/assignments/{assignment_id}/complete", response_model=CompleteResponse)
def complete_assignment(
    assignment_id: UUID,
    admin: CurrentUser = Depends(require_admin),
    store: Store = Depends(get_store),
):
    assignment, payout = _ledger(store, admin).complete_assignment(assignment_id)
    return CompleteResponse(
        assignment=assignment_out(store, assignment),
        payout=PayoutOut.model_validate(payout),
    )


@router.post("/assignments/{assignment_id}/cancel", response_model=AssignmentOut)
def cancel_assignment(
    assignment_id: UUID,
    body: CancelRequest,
    admin: CurrentUser = Depends(require_admin),
    store: Store = Depends(get_store),
):
    assignment = _ledger(store, admin).cancel(assignment_id, body.reason)
    return assignment_out(store, assignment)


@router.post("/assignments/expire-pending", response_model=ExpirePendingResponse)
def expire_pending_payments(admin: CurrentUser = Depends(require_admin), store: Store = Depends(get_store)):
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.PAYMENT_PENDING_TTL_MINUTES)
    expired = _ledger(store, admin).expire_stale_payments(created_before=cutoff)
    return ExpirePendingResponse(cutoff=cutoff, expired=expired)


# -----------------------------
# Money
# -----------------------------

@router.get("/payments", response_model=List[PaymentOut])
def list_payments(admin: CurrentUser = Depends(require_admin), store: Store = Depends(get_store)):
    return [PaymentOut.model_validate(p) for p in store.list_payments()]


@router.get("/payouts", response_model=List[PayoutOut])
def list_payouts(admin: CurrentUser = Depends(require_admin), store: Store = Depends(get_store)):
    return [PayoutOut.model_validate(p) for p in store.list_payouts()]


@router.post("/payouts/{payout_id}/mark-paid", response_model=PayoutOut)
def payout_mark_paid(
    payout_id: UUID,
    admin: CurrentUser = Depends(require_admin),
    store: Store = Depends(get_store),
):
    return PayoutOut.model_validate(mark_payout_paid(store, payout_id, actor_user_id=admin.user_id))


@router.get("/stats", response_model=StatsResponse)
def stats(admin: CurrentUser = Depends(require_admin), store: Store = Depends(get_store)):
    by_role = store.count_users_by_role()
    by_status = {s: 0 for s in sm.ALL_STATUSES}
    by_status.update(store.count_assignments_by_status())

    return StatsResponse(
        total_users=sum(by_role.values()),
        total_students=by_role.get("STUDENT", 0),
        total_tutors=by_role.get("TUTOR", 0),
        total_assignments=sum(by_status.values()),
        active_assignments=by_status[sm.IN_PROGRESS],
        pending_payments=by_status[sm.PAYMENT_PENDING],
        assignments_by_status=by_status,
        total_revenue_cents=store.sum_platform_fees_succeeded(),
    )
