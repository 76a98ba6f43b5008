# routes/_presenters.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from app.assignments.model import Assignment
from app.profiles.model import User
from app.store import Store
from schemas import AssignmentOut, PaymentOut, StudentProfileOut, TutorProfileOut, UserOut


def profile_out(store: Store, user: User):
    if user.role == "STUDENT":
        p = store.get_student_profile_by_user(user.id)
        return StudentProfileOut.model_validate(p) if p else None
    if user.role == "TUTOR":
        p = store.get_tutor_profile_by_user(user.id)
        return TutorProfileOut.model_validate(p) if p else None
    return None


def user_out(store: Store, user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        role=user.role,
        created_at=user.created_at,
        profile=profile_out(store, user),
    )


def assignment_out(
    store: Store,
    assignment: Assignment,
    *,
    student_names: Optional[dict[UUID, str]] = None,
    tutor_names: Optional[dict[UUID, str]] = None,
    with_payment: bool = True,
) -> AssignmentOut:
    out = AssignmentOut.model_validate(assignment)

    if student_names is not None:
        out.student_name = student_names.get(assignment.student_id)
    else:
        student = store.get_student_profile(assignment.student_id)
        out.student_name = student.name if student else None

    if tutor_names is not None:
        out.tutor_name = tutor_names.get(assignment.tutor_id)
    else:
        tutor = store.get_tutor_profile(assignment.tutor_id)
        out.tutor_name = tutor.name if tutor else None

    if with_payment:
        payment = store.get_payment_by_assignment(assignment.id)
        out.payment = PaymentOut.model_validate(payment) if payment else None
    return out
