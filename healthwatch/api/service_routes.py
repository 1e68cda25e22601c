"""API routes for monitored services.

Endpoints:
  GET    /api/services                    — list services with current status (cached 60s)
  POST   /api/services                    — register a service
  GET    /api/services/{id}               — service detail + current status
  PUT    /api/services/{id}               — partial update
  DELETE /api/services/{id}               — remove a service and its history
  GET    /api/services/{id}/status        — current status (never probes)
  GET    /api/services/{id}/history       — recent probe results, newest first
  POST   /api/services/{id}/check-now     — forced probe, bypassing the cache
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Path, Query, Request

from healthwatch.api.models import ServiceCreate, ServiceUpdate
from healthwatch.errors import ServiceNotFoundError

logger = logging.getLogger(__name__)

service_router = APIRouter()

ServiceId = Annotated[int, Path(gt=0, description="Service id")]


@service_router.get("/services")
def list_services(request: Request) -> dict[str, Any]:
    """List all services, each enriched with its current status."""
    engine = request.app.state.engine
    services, cached = engine.list_services()
    return {"success": True, "cached": cached, "count": len(services), "data": services}


@service_router.post("/services", status_code=201)
def create_service(body: ServiceCreate, request: Request) -> dict[str, Any]:
    """Register a new service to monitor."""
    engine = request.app.state.engine
    service = engine.registry.create(
        name=body.name,
        url=str(body.url),
        check_interval=body.check_interval,
        expected_status=body.expected_status,
        timeout=body.timeout,
    )
    engine.invalidate_service_cache(service.id)
    return {
        "success": True,
        "message": "Service created successfully",
        "data": service.to_dict(),
    }


@service_router.get("/services/{service_id}")
def get_service(request: Request, service_id: ServiceId) -> dict[str, Any]:
    """Service definition plus current status and mean healthy response time."""
    engine = request.app.state.engine
    service = engine.registry.get(service_id)
    if service is None:
        raise ServiceNotFoundError(service_id)

    data = service.to_dict()
    data["current_status"] = engine.get_service_status(service_id)
    data["avg_response_time"] = engine.results.average_response_time(service_id)
    return {"success": True, "data": data}


@service_router.put("/services/{service_id}")
def update_service(
    body: ServiceUpdate, request: Request, service_id: ServiceId,
) -> dict[str, Any]:
    """Apply a partial update and drop the service's cached state."""
    engine = request.app.state.engine
    patch = body.to_patch()
    if patch.is_empty():
        raise HTTPException(status_code=400, detail="No changes were made")

    # No row touched means the service is gone, whatever an earlier read said.
    if not engine.registry.update(service_id, patch):
        raise ServiceNotFoundError(service_id)

    engine.invalidate_service_cache(service_id)
    updated = engine.registry.get(service_id)
    if updated is None:
        raise ServiceNotFoundError(service_id)
    return {
        "success": True,
        "message": "Service updated successfully",
        "data": updated.to_dict(),
    }


@service_router.delete("/services/{service_id}")
def delete_service(request: Request, service_id: ServiceId) -> dict[str, Any]:
    engine = request.app.state.engine
    if not engine.registry.delete(service_id):
        raise ServiceNotFoundError(service_id)

    engine.invalidate_service_cache(service_id)
    return {"success": True, "message": "Service deleted successfully"}


@service_router.get("/services/{service_id}/status")
def service_status(request: Request, service_id: ServiceId) -> dict[str, Any]:
    engine = request.app.state.engine
    return {"success": True, "data": engine.get_service_status(service_id)}


@service_router.get("/services/{service_id}/history")
def service_history(
    request: Request,
    service_id: ServiceId,
    limit: int = Query(default=10, ge=1, le=100),
) -> dict[str, Any]:
    engine = request.app.state.engine
    history = engine.get_history(service_id, limit)
    return {"success": True, "count": len(history), "data": history}


@service_router.post("/services/{service_id}/check-now")
def check_now(request: Request, service_id: ServiceId) -> dict[str, Any]:
    """Force an immediate probe. A dead endpoint is reported, not raised."""
    engine = request.app.state.engine
    result = engine.check_service(service_id, force_check=True)
    return {"success": True, "message": "Health check performed", "data": result}
