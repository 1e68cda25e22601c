"""System-level API routes.

Endpoints:
  GET  /api/health     — liveness of healthwatch itself (database + cache)
  GET  /api/metrics    — global check metrics (cached 60s)
  POST /api/check-all  — sweep every registered service
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

system_router = APIRouter()

_STARTED = time.monotonic()


@system_router.get("/health")
def app_health(request: Request) -> JSONResponse:
    """Report whether our own database and cache are reachable."""
    db = request.app.state.db
    engine = request.app.state.engine

    services = {
        "database": "healthy" if db.ping() else "unhealthy",
        "cache": "healthy" if engine.cache.ping() else "unhealthy",
    }
    status = "healthy" if all(v == "healthy" for v in services.values()) else "degraded"

    return JSONResponse(
        status_code=200 if status == "healthy" else 503,
        content={
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - _STARTED, 1),
            "services": services,
        },
    )


@system_router.get("/metrics")
def metrics(request: Request) -> dict[str, Any]:
    engine = request.app.state.engine
    data, cached = engine.get_metrics()
    return {"success": True, "cached": cached, "data": data}


@system_router.post("/check-all")
def check_all(request: Request) -> dict[str, Any]:
    """Check every service; cached statuses are reused where still live."""
    engine = request.app.state.engine
    results = engine.check_all_services()
    return {"success": True, "message": "Health checks completed", "data": results}
