# backend/salesrecon/core/security.py
from __future__ import annotations

import datetime as dt

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from salesrecon.config import get_settings
from salesrecon.db.session import get_db
from salesrecon.models.user import User

settings = get_settings()
pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer = HTTPBearer()


def hash_password(plain: str) -> str:
    return pwd_ctx.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_ctx.verify(plain, hashed)


def _encode(sub: str, lifetime: dt.timedelta, typ: str) -> str:
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": sub,
        "typ": typ,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def create_access(sub: str) -> str:
    return _encode(sub, dt.timedelta(minutes=settings.JWT_ACCESS_MIN), "access")


def create_refresh(sub: str) -> str:
    return _encode(sub, dt.timedelta(days=settings.JWT_REFRESH_DAYS), "refresh")


def subject_of(token: str, expected_typ: str) -> str:
    """Validate ``token`` and return its subject; ValueError when unusable."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError as exc:
        raise ValueError(str(exc)) from exc
    if payload.get("typ") != expected_typ:
        raise ValueError(f"Not an {expected_typ} token")
    sub = payload.get("sub")
    if not sub:
        raise ValueError("Missing subject")
    return sub


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """FastAPI dependency that validates an access token and returns an active user."""
    try:
        email = subject_of(creds.credentials, "access")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    user = db.execute(
        select(User).where(User.email == email, User.is_active.is_(True))
    ).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user
