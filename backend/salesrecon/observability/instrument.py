from __future__ import annotations

import functools
import time
from typing import Any, Callable, TypeVar

import structlog

F = TypeVar("F", bound=Callable[..., Any])

logger = structlog.get_logger("job")


def _summarize(result: Any) -> Any:
    if hasattr(result, "to_dict"):
        return result.to_dict()
    if hasattr(result, "model_dump"):
        return result.model_dump()
    return None


def log_job(name: str) -> Callable[[F], F]:
    """Decorator to measure maintenance-job duration and emit structured logs."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            start = time.perf_counter()
            logger.info("job.start", job=name)
            try:
                result = func(*args, **kwargs)
            except Exception:
                duration = (time.perf_counter() - start) * 1000
                logger.exception("job.error", job=name, duration_ms=round(duration, 2))
                raise
            duration = (time.perf_counter() - start) * 1000
            summary = _summarize(result)
            logger.info("job.completed", job=name, duration_ms=round(duration, 2), result=summary)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
