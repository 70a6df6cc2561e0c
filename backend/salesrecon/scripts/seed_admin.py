"""Create or reset the operator account from ADMIN_EMAIL / ADMIN_PASSWORD."""
from __future__ import annotations

import sys

import structlog
from sqlalchemy.exc import SQLAlchemyError

from salesrecon.config import get_settings
from salesrecon.db.session import SessionLocal, init_db
from salesrecon.observability.logging import configure_logging
from salesrecon.services.users import ensure_admin

logger = structlog.get_logger(__name__)


def main() -> int:
    configure_logging()
    settings = get_settings()
    if not settings.ADMIN_PASSWORD:
        logger.error("admin.password_missing", hint="set ADMIN_PASSWORD")
        return 2
    try:
        init_db()
        with SessionLocal() as db:
            user, created = ensure_admin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)
    except SQLAlchemyError:
        logger.exception("admin.seed_failed")
        return 1
    print(f"admin {'created' if created else 'updated'}: {user.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
