from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from oplimit.core.config import settings
from oplimit.core.rate_limit import get_rate_limiter, store_reachable

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness probe for load balancers and monitors.

    Does not touch the counter store, so it stays green while the store is
    down and the limiter is failing open or closed.
    """

    return {"status": "ok"}


@router.get("/ready")
def readiness_check() -> JSONResponse:
    """Readiness probe: pings the configured counter store.

    Declared sync so FastAPI runs the blocking ping in its threadpool.
    Returns 503 while the store is unreachable.
    """

    limiter = get_rate_limiter()
    body = {"store_backend": settings.store.backend}
    if store_reachable(limiter):
        return JSONResponse({"status": "ok", **body})
    return JSONResponse(
        {"status": "unavailable", **body},
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
    )
