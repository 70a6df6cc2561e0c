# backend/salesrecon/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from salesrecon.core.security import create_access, create_refresh, subject_of, verify_password
from salesrecon.db.session import get_db
from salesrecon.models.user import User
from salesrecon.schemas.auth import LoginIn, RefreshIn, TokenPair

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=TokenPair)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.execute(select(User).where(User.email == body.email.strip().lower())).scalar_one_or_none()
    if not user or not user.is_active or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return TokenPair(
        access_token=create_access(user.email),
        refresh_token=create_refresh(user.email),
    )


@router.post("/refresh", response_model=TokenPair)
def refresh(body: RefreshIn):
    try:
        email = subject_of(body.refresh_token, "refresh")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return TokenPair(
        access_token=create_access(email),
        refresh_token=create_refresh(email),
    )
