"""Health check endpoint."""

import time
from typing import Any

from fastapi import APIRouter

from hab_api import __version__
from hab_api.config import StorageBackend
from hab_api.errors.exceptions import StoreUnavailableError
from hab_api.models.responses import HealthResponse
from hab_api.storage.manager import get_storage
from hab_api.storage.redis_client import RedisManager

router = APIRouter(tags=["Health"])


async def _storage_health() -> dict[str, Any]:
    storage = get_storage()
    start = time.perf_counter()
    try:
        users = await storage.users.count()
    except StoreUnavailableError as e:
        return {"status": "error", "backend": storage.backend.value, "error": e.message}
    latency = (time.perf_counter() - start) * 1000
    return {
        "status": "up",
        "backend": storage.backend.value,
        "users": users,
        "latency_ms": round(latency, 2),
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check the health status of the API and its data store.",
)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns the health status of the API and its components:
    - API status
    - Data store status
    - Redis connection status (Redis backend only)
    """
    components: dict[str, dict[str, Any]] = {}

    components["api"] = {"status": "up", "latency_ms": 0}
    components["storage"] = await _storage_health()

    if get_storage().backend == StorageBackend.REDIS:
        components["redis"] = await RedisManager.get_instance().health_check()

    all_up = all(c.get("status") == "up" for c in components.values())
    status = "healthy" if all_up else "degraded"

    return HealthResponse(
        status=status,
        version=__version__,
        components=components,
    )


@router.get(
    "/",
    summary="Root",
    description="API root endpoint with basic info.",
)
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "name": "HAB Detection Service API",
        "version": __version__,
        "documentation": "/docs",
        "health": "/health",
    }
