from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from salesrecon.db.base import Base


class User(Base):
    """Dashboard operator allowed to read reports and run imports."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
