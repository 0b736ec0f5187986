"""Health, readiness, and metrics endpoints.

These endpoints do NOT require X-Service-Key authentication.
- GET /health — service status + resolver state
- GET /readiness — 200 unless resolution is suspended after a failure
- GET /metrics — resolver and blacklist statistics
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response

from pacscout.models.responses import ApiResponse


def create_health_router(*, resolver: Any = None) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with resolver state."""
        stats = resolver.get_stats() if resolver else {}
        return ApiResponse.ok(
            {
                "status": "healthy",
                "resolver": {
                    "state": stats.get("state"),
                    "mode": stats.get("mode"),
                    "script_url": stats.get("script_url"),
                },
            }
        )

    @health_router.get("/readiness")
    async def readiness(response: Response) -> dict:
        """Readiness check — 503 while resolution is suspended."""
        stats = resolver.get_stats() if resolver else {"state": None}
        state = stats.get("state")
        is_ready = resolver is not None and state != "suspended"

        if not is_ready:
            response.status_code = 503

        return ApiResponse(
            success=is_ready,
            data={"ready": is_ready, "state": state},
            error=None if is_ready else "Proxy resolution suspended",
        ).model_dump()

    @health_router.get("/metrics")
    async def metrics() -> dict:
        """Operational metrics endpoint."""
        stats = resolver.get_stats() if resolver else {}
        blacklist = resolver.blacklist.get_stats() if resolver else {}
        return ApiResponse.ok({"resolver": stats, "blacklist": blacklist})

    return health_router
