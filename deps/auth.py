# deps/auth.py
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from security import AccessClaims, decode_access_token

bearer = HTTPBearer(auto_error=False)

# route handlers only need who is calling and in which role
CurrentUser = AccessClaims


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> CurrentUser:
    if not creds or (creds.scheme or "").lower() != "bearer":
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    claims = decode_access_token(creds.credentials)
    if claims is None:
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")
    return claims


def require_role(*roles: str):
    allowed = {r.upper() for r in roles}

    def _dep(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="FORBIDDEN")
        return user

    return _dep


require_admin = require_role("ADMIN")
require_student = require_role("STUDENT")
require_tutor = require_role("TUTOR")
