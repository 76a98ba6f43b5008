# deps/profiles.py
from fastapi import Depends, HTTPException

from app.profiles.model import StudentProfile, TutorProfile
from app.store import Store
from deps.auth import CurrentUser, require_student, require_tutor
from deps.store import get_store


def current_student(
    user: CurrentUser = Depends(require_student),
    store: Store = Depends(get_store),
) -> StudentProfile:
    profile = store.get_student_profile_by_user(user.user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="STUDENT_PROFILE_NOT_FOUND")
    return profile


def current_tutor(
    user: CurrentUser = Depends(require_tutor),
    store: Store = Depends(get_store),
) -> TutorProfile:
    profile = store.get_tutor_profile_by_user(user.user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="TUTOR_PROFILE_NOT_FOUND")
    return profile
