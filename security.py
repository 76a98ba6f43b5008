# security.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from jose import jwt, JWTError
from passlib.context import CryptContext

from app.profiles.model import ROLES
from settings import settings

pwd_context = CryptContext(
    schemes=["bcrypt", "pbkdf2_sha256"],
    deprecated="auto",
)


@dataclass(frozen=True)
class AccessClaims:
    user_id: UUID
    role: str


# -----------------------
# Password hashing
# -----------------------
def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError):
        # unknown/corrupt hash format
        return False


# -----------------------
# Access tokens (JWT)
# -----------------------
def create_access_token(user_id: UUID, role: str, minutes: Optional[int] = None) -> str:
    """The role rides in the token so route guards never hit the database."""
    now = datetime.now(timezone.utc)
    ttl = timedelta(minutes=minutes or settings.JWT_ACCESS_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": role.upper(),
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_access_token(token: str) -> Optional[AccessClaims]:
    """None for anything that is not a live token we issued with a known role."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        return None

    role = str(payload.get("role") or "").upper()
    if role not in ROLES:
        return None
    try:
        return AccessClaims(user_id=UUID(str(payload.get("sub"))), role=role)
    except ValueError:
        return None
