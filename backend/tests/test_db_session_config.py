from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from salesrecon.config import Settings
import salesrecon.db.session as db_session


def test_select_database_url_prefers_test_setting(monkeypatch):
    monkeypatch.setenv("PYTEST_CURRENT_TEST", "")
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(
        db_session,
        "settings",
        Settings(ENV="test", TEST_DATABASE_URL="sqlite:///tmp-test.db", DATABASE_URL=None),
        raising=False,
    )
    assert db_session._select_database_url() == "sqlite:///tmp-test.db"


def test_select_database_url_env_fallback(monkeypatch):
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///runtime.db")
    monkeypatch.setattr(
        db_session,
        "settings",
        Settings(ENV="prod", JWT_SECRET="x", TEST_DATABASE_URL=None, DATABASE_URL=None),
        raising=False,
    )
    assert db_session._select_database_url() == "sqlite:///runtime.db"


def test_select_database_url_defaults(monkeypatch):
    monkeypatch.delenv("PYTEST_CURRENT_TEST", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    monkeypatch.setattr(
        db_session,
        "settings",
        Settings(ENV="prod", JWT_SECRET="x", TEST_DATABASE_URL=None, DATABASE_URL=None),
        raising=False,
    )
    assert db_session._select_database_url().endswith("/sales")


def test_normalize_url_rewrites_scheme_and_requires_ssl(monkeypatch):
    monkeypatch.setattr(
        db_session,
        "settings",
        Settings(ENV="test", DB_REQUIRE_SSL=True),
        raising=False,
    )
    url = db_session._normalize_url("postgres://u:p@db.example.com:5432/sales")
    assert url.startswith("postgresql+psycopg2://u:p@db.example.com:5432/sales")
    assert "sslmode=require" in url

    assert db_session._normalize_url("sqlite://") == "sqlite://"


def test_build_engine_variants(tmp_path):
    memory = db_session._build_engine("sqlite://")
    assert isinstance(memory.pool, StaticPool)

    file_engine = db_session._build_engine(f"sqlite:///{tmp_path / 'x.db'}")
    with file_engine.connect() as conn:
        assert conn.execute(text("select 1")).scalar() == 1
    file_engine.dispose()
    memory.dispose()


def test_get_db_closes_session():
    gen = db_session.get_db()
    session = next(gen)
    assert session.execute(text("select 1")).scalar() == 1
    gen.close()
