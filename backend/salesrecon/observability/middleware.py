from __future__ import annotations

import time
import uuid
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from salesrecon.schemas.common import fail

from .metrics import REQUEST_COUNTER, REQUEST_LATENCY, record_latency

logger = structlog.get_logger("http")


async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=str(request.url.path),
    )
    try:
        response = await call_next(request)
    except Exception:
        duration = (time.perf_counter() - start) * 1000
        _record(request, duration, "500")
        logger.exception("request.error", status_code=500, duration_ms=round(duration, 2))
        structlog.contextvars.clear_contextvars()
        raise

    duration = (time.perf_counter() - start) * 1000
    _record(request, duration, str(response.status_code))
    logger.info(
        "request.completed",
        status_code=response.status_code,
        duration_ms=round(duration, 2),
    )
    response.headers["X-Request-Id"] = request_id
    structlog.contextvars.clear_contextvars()
    return response


def _record(request: Request, duration_ms: float, status: str) -> None:
    # Label by route template so /api/sales/{channel}/counts stays one series.
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    record_latency(request.url.path, duration_ms)
    REQUEST_COUNTER.labels(path=path, method=request.method, status=status).inc()
    REQUEST_LATENCY.labels(path=path, method=request.method).observe(duration_ms / 1000)


def register_request_middleware(app: FastAPI) -> None:
    app.middleware("http")(request_context_middleware)


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.error(
        "request.unhandled_exception",
        exc_type=type(exc).__name__,
        error=str(exc),
        exc_info=exc,
    )
    details: dict[str, Any] | None = {"request_id": request_id} if request_id else None
    return fail(code="INTERNAL_ERROR", message="Internal Server Error", status_code=500, details=details)
