# backend/salesrecon/main.py
from __future__ import annotations

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from salesrecon import __version__
from salesrecon.config import get_settings
from salesrecon.core.errors import SalesError
from salesrecon.core.security import get_current_user
from salesrecon.db.session import init_db
from salesrecon.observability.logging import configure_logging
from salesrecon.observability.metrics import router as observability_router
from salesrecon.observability.middleware import register_request_middleware, unhandled_exception_handler
from salesrecon.routers.auth import router as auth_router
from salesrecon.routers.health import router as health_router
from salesrecon.routers.sales import router as sales_router
from salesrecon.schemas.common import fail, meta_now

configure_logging()
logger = structlog.get_logger(__name__)


def sales_error_handler(request: Request, exc: SalesError):
    channel = request.path_params.get("channel")
    return fail(code=exc.code, message=str(exc), status_code=exc.status_code, meta=meta_now(channel=channel))


def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    logger.info("request.validation_failed", errors=errors)
    return fail(
        code="VALIDATION_ERROR",
        message="Invalid request parameters.",
        status_code=400,
        details={"errors": errors},
        meta=meta_now(channel=request.path_params.get("channel")),
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Sales Reconciliation", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=86400,
    )

    if settings.TRUSTED_HOSTS:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.TRUSTED_HOSTS)

    register_request_middleware(app)
    app.add_exception_handler(SalesError, sales_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.on_event("startup")
    def _ensure_tables() -> None:
        init_db()

    # Public routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(observability_router)

    # Private routers share the same auth dependency
    require_auth = [Depends(get_current_user)]
    app.include_router(sales_router, dependencies=require_auth)

    return app


app = create_app()
