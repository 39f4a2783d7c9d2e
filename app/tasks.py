"""Best-effort side effects.

``run_best_effort`` awaits a one-shot operation whose failure must never reach
the caller of the primary operation (auto-scrape after URL creation, analytics
after a redirect). Failures are logged here and nowhere else; the operation is
not retried.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

from prometheus_client import Counter

from app.exceptions import ServiceError

__all__ = ["run_best_effort"]

T = TypeVar("T")

BEST_EFFORT_FAILURES_TOTAL = Counter(
    "url_shortener_best_effort_failures_total",
    "Best-effort side effects that failed and were swallowed",
    ["operation"],
)


async def run_best_effort(
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    logger: logging.Logger | logging.LoggerAdapter,
) -> Optional[T]:
    try:
        return await operation()
    except ServiceError as exc:
        BEST_EFFORT_FAILURES_TOTAL.labels(operation=name).inc()
        logger.warning(f"{name} failed and was skipped: {exc.message}")
    except Exception:
        BEST_EFFORT_FAILURES_TOTAL.labels(operation=name).inc()
        logger.exception(f"{name} failed unexpectedly and was skipped")
    return None
