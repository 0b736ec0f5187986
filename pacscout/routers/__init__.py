"""HTTP routers — resolution endpoints and health checks."""

from pacscout.routers.health import create_health_router
from pacscout.routers.resolve import create_resolve_router

__all__ = ["create_health_router", "create_resolve_router"]
