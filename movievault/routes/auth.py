# movievault/routes/auth.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from movievault.core import responses
from movievault.core.errors import UnauthorizedError
from movievault.core.settings import settings
from movievault.database import get_async_db
from movievault.models_auth import AuthUser
from movievault.schemas import LoginIn, TokenOut, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error=False so we can answer with our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


# -------- Helpers --------
def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        return False


def create_access_token(
    *, user_id: int, username: str, role: str, minutes: Optional[int] = None
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes if minutes is not None else settings.access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "type": "access",
    }
    return jwt.encode(payload, settings.auth_secret, algorithm=ALGORITHM)


async def _user_by_username(session: AsyncSession, username: str) -> Optional[AuthUser]:
    res = await session.execute(select(AuthUser).where(AuthUser.username == username))
    return res.scalar_one_or_none()


# -------- Core auth dependency --------
async def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_async_db),
) -> AuthUser:
    """
    Resolve the bearer token to a live user. The user is handed to routes
    explicitly through Depends, never stored on the request.
    """
    if not creds or not creds.scheme or creds.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing bearer token")

    try:
        data = jwt.decode(creds.credentials, settings.auth_secret, algorithms=[ALGORITHM])
        sub = data.get("sub")
        if not sub:
            raise UnauthorizedError("Invalid token")
        user_id = int(sub)
    except (JWTError, ValueError):
        raise UnauthorizedError("Invalid or expired token")

    res = await session.execute(select(AuthUser).where(AuthUser.id == user_id))
    user = res.scalar_one_or_none()
    if not user:
        raise UnauthorizedError("User not found")
    return user


# -------- Routes --------
@router.post("/login", summary="Login")
async def login(payload: LoginIn, session: AsyncSession = Depends(get_async_db)):
    user = await _user_by_username(session, payload.username)
    if not user or not verify_password(payload.password, user.password_hash or ""):
        raise UnauthorizedError("Invalid username or password")

    token = create_access_token(user_id=user.id, username=user.username, role=user.role)
    out = TokenOut(token=token, user=UserOut.model_validate(user))
    return responses.success(out.model_dump(), "Login successful")


@router.get("/me", summary="Me")
async def me(current: AuthUser = Depends(get_current_user)):
    return responses.success(UserOut.model_validate(current).model_dump())
