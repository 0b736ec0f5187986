"""Resolution and control endpoints.

- GET  /api/v1/proxies?url=… — all directives for a URL, in order
- GET  /api/v1/proxy?url=… — the preferred directive for a URL
- POST /api/v1/blacklist — report a proxy that just failed
- POST /api/v1/reset — drop cached state and re-read the proxy configuration
- POST /api/v1/network-events — report a network configuration change

Lookups that arrive while the script is being fetched wait for the fetch
to complete before the response is sent.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Query

from pacscout.models.requests import BlacklistRequest, NetworkEventRequest
from pacscout.models.responses import ApiResponse
from pacscout.services.network_monitor import NetworkEvent
from pacscout.validators.url_validator import validate_url

if TYPE_CHECKING:
    from pacscout.services.resolver import PacResolver

logger = logging.getLogger(__name__)


def create_resolve_router(*, resolver: PacResolver) -> APIRouter:
    """Factory that creates the resolution router bound to a resolver."""

    resolve_router = APIRouter(prefix="/api/v1", tags=["resolve"])

    @resolve_router.get("/proxies")
    async def proxies_for_url(url: str = Query(..., min_length=1)) -> dict:
        target = validate_url(url)
        proxies = await resolver.proxies_for_url(target)
        return ApiResponse.ok({"url": target, "proxies": proxies})

    @resolve_router.get("/proxy")
    async def proxy_for_url(url: str = Query(..., min_length=1)) -> dict:
        target = validate_url(url)
        proxy = await resolver.proxy_for_url(target)
        return ApiResponse.ok({"url": target, "proxy": proxy})

    @resolve_router.post("/blacklist")
    async def blacklist_proxy(body: BlacklistRequest) -> dict:
        resolver.blacklist_proxy(body.address)
        return ApiResponse.ok({"address": body.address, "blacklisted": True})

    @resolve_router.post("/reset")
    async def reset() -> dict:
        resolver.reset()
        return ApiResponse.ok(resolver.get_stats())

    @resolve_router.post("/network-events")
    async def network_event(body: NetworkEventRequest) -> dict:
        before = resolver.generation
        resolver.on_network_change(NetworkEvent(interface=body.interface, state=body.state))
        return ApiResponse.ok(
            {"interface": body.interface, "reset": resolver.generation != before}
        )

    return resolve_router
