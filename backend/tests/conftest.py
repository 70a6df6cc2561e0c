import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

# Ensure backend/ is importable as the top-level "salesrecon" package even when pytest runs from repo root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Run against a single in-memory SQLite DB *before* importing any salesrecon modules
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test_secret")
os.environ.setdefault("JWT_ALG", "HS256")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import salesrecon.db.session as db_session  # noqa: E402

from salesrecon.core.security import create_access, get_current_user, hash_password  # noqa: E402
from salesrecon.db.base import Base  # noqa: E402
from salesrecon.db.session import get_db  # noqa: E402
from salesrecon.main import app  # noqa: E402
from salesrecon.models.user import User  # noqa: E402

ENGINE = db_session.ENGINE
SessionTesting = db_session.SessionLocal

assert ENGINE.url.get_backend_name() == "sqlite", "tests must not run against a real database"

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo123"


def _create_schema():
    Base.metadata.create_all(bind=ENGINE)
    with SessionTesting() as s:
        exists = s.execute(select(User).where(User.email == DEMO_EMAIL)).scalar_one_or_none()
        if exists is None:
            s.add(User(email=DEMO_EMAIL, password_hash=hash_password(DEMO_PASSWORD), is_active=True))
            s.commit()


# Ensure schema exists even for modules that instantiate TestClient at import time
_create_schema()


def _override_get_current_user():
    return User(id=0, email="pytest@example.com", password_hash="", is_active=True)


@pytest.fixture(autouse=True)
def _toggle_auth_override(request):
    """Bypass JWT for most API tests while allowing auth-specific suites to exercise it."""
    test_path = str(getattr(request.node, "fspath", ""))
    needs_real_auth = "test_auth_api.py" in test_path
    if needs_real_auth:
        app.dependency_overrides.pop(get_current_user, None)
        yield
        app.dependency_overrides.pop(get_current_user, None)
    else:
        app.dependency_overrides[get_current_user] = _override_get_current_user
        try:
            yield
        finally:
            app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture(scope="function")
def reset_db():
    Base.metadata.drop_all(bind=ENGINE)
    _create_schema()
    yield
    Base.metadata.drop_all(bind=ENGINE)
    _create_schema()


@pytest.fixture(scope="function")
def db(reset_db):
    session = SessionTesting()

    def _override_get_db():
        yield session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture(scope="function")
def client(db):
    token = create_access("pytest@example.com")
    with TestClient(app, headers={"Authorization": f"Bearer {token}"}) as c:
        yield c
