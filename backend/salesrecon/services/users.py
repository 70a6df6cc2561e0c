from __future__ import annotations

from typing import Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from salesrecon.core.security import hash_password
from salesrecon.models.user import User

logger = structlog.get_logger(__name__)


def ensure_admin(db: Session, email: str, password: str) -> Tuple[User, bool]:
    """
    Make sure an active operator account exists for ``email``.

    An existing account is reactivated and gets the new password. Returns the
    user and whether it was created.
    """
    email = email.strip().lower()
    if not password:
        raise ValueError("Admin password must not be empty")

    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    created = user is None
    if created:
        user = User(email=email, password_hash=hash_password(password), is_active=True)
        db.add(user)
    else:
        user.password_hash = hash_password(password)
        user.is_active = True
    db.commit()
    db.refresh(user)
    logger.info("admin.ensured", email=email, created=created)
    return user, created


__all__ = ["ensure_admin"]
