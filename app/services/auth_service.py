from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from ..config import settings
from ..errors import UnauthorizedError

# tokens come from the auth service's login route; we only verify them here.
# auto_error is off so a missing token renders through our own error envelope
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise UnauthorizedError("Invalid token")


def _user_id_from(payload: dict) -> Optional[str]:
    # the auth service signs {"userId": ...}; accept the standard "sub" too
    user_id = payload.get("sub") or payload.get("userId")
    return str(user_id) if user_id else None


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    if not token:
        raise UnauthorizedError("Not authenticated")
    user_id = _user_id_from(decode_access_token(token))
    if not user_id:
        raise UnauthorizedError("Invalid token payload")
    return {"user_id": user_id}


def get_current_user_optional(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[dict]:
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except UnauthorizedError:
        return None
    user_id = _user_id_from(payload)
    return {"user_id": user_id} if user_id else None
