# routes/profiles.py
from fastapi import APIRouter, Depends, HTTPException

from app.store import Store
from deps.auth import CurrentUser, get_current_user
from deps.store import get_store
from routes._presenters import user_out
from schemas import StudentProfileIn, StudentProfileOut, TutorProfileIn, TutorProfileOut, UserOut

router = APIRouter(prefix="/v1/profiles", tags=["profiles"])


@router.get("/me", response_model=UserOut)
def me(user: CurrentUser = Depends(get_current_user), store: Store = Depends(get_store)):
    row = store.get_user(user.user_id)
    if row is None:
        raise HTTPException(status_code=404, detail="USER_NOT_FOUND")
    return user_out(store, row)


@router.put("/student", response_model=StudentProfileOut)
def update_student_profile(
    body: StudentProfileIn,
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    if user.role != "STUDENT":
        raise HTTPException(status_code=403, detail="FORBIDDEN")

    profile = store.update_student_profile(user.user_id, **body.model_dump())
    if profile is None:
        raise HTTPException(status_code=404, detail="STUDENT_PROFILE_NOT_FOUND")
    return StudentProfileOut.model_validate(profile)


@router.put("/tutor", response_model=TutorProfileOut)
def update_tutor_profile(
    body: TutorProfileIn,
    user: CurrentUser = Depends(get_current_user),
    store: Store = Depends(get_store),
):
    if user.role != "TUTOR":
        raise HTTPException(status_code=403, detail="FORBIDDEN")

    profile = store.update_tutor_profile(user.user_id, **body.model_dump())
    if profile is None:
        raise HTTPException(status_code=404, detail="TUTOR_PROFILE_NOT_FOUND")
    return TutorProfileOut.model_validate(profile)
