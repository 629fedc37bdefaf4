from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from task_throttle.core.errors import StoreUnavailableError
from task_throttle.core.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns a static status so load balancers can tell the process is up.
    Does not touch the counter store.
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check: the counter store must answer a ping."""

    store = get_rate_limiter(request).store
    try:
        reachable = await store.ping()
    except StoreUnavailableError:
        reachable = False

    if not reachable:
        logger.warning("health.store_unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "store": "unreachable"},
        )

    return JSONResponse(content={"status": "ok", "store": "reachable"})
