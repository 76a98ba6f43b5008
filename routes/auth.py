# routes/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError as PydanticValidationError

import rate_limit
from app.errors import ConflictError
from app.profiles.model import User
from app.store import Store
from deps.store import get_store
from routes._presenters import user_out
from schemas import AuthResponse, LoginRequest, RegisterRequest, StudentProfileIn, TutorProfileIn
from security import create_access_token, hash_password, verify_password

router = APIRouter(prefix="/v1/auth", tags=["auth"])
logger = logging.getLogger("tutormatch.auth")


def _auth_response(store: Store, user: User) -> AuthResponse:
    token = create_access_token(user.id, user.role)
    return AuthResponse(access_token=token, user=user_out(store, user))


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(body: RegisterRequest, store: Store = Depends(get_store)):
    try:
        if body.role == "STUDENT":
            profile = StudentProfileIn.model_validate(body.profile)
        else:
            profile = TutorProfileIn.model_validate(body.profile)
    except PydanticValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=[{"loc": ["profile", *err["loc"]], "msg": err["msg"]} for err in e.errors()],
        )

    if store.get_user_by_email(body.email) is not None:
        raise HTTPException(status_code=409, detail="EMAIL_TAKEN")

    try:
        user = store.create_user(email=body.email, password_hash=hash_password(body.password), role=body.role)
    except ConflictError:
        raise HTTPException(status_code=409, detail="EMAIL_TAKEN")

    if body.role == "STUDENT":
        store.create_student_profile(user_id=user.id, **profile.model_dump())
    else:
        store.create_tutor_profile(user_id=user.id, **profile.model_dump())

    logger.info("user_registered user_id=%s role=%s", user.id, user.role)
    return _auth_response(store, user)


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, request: Request, store: Store = Depends(get_store)):
    client_key = request.client.host if request.client else "unknown"
    if not rate_limit.allow_login(client_key):
        raise HTTPException(status_code=429, detail="RATE_LIMITED")

    user = store.get_user_by_email(body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="INVALID_CREDENTIALS")

    return _auth_response(store, user)
