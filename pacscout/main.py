"""FastAPI application entry point with lifespan management.

Startup: load settings, configure logging, build the notifier, the script
engine and the resolver, start the network monitor.
Shutdown: stop the network monitor, cancel any script fetch (pending
lookups are answered DIRECT), cancel notification deliveries.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from pacscout.config.proxy_config import load_resolution_config
from pacscout.config.settings import PacScoutSettings
from pacscout.fetch.discovery import Discovery, static_hint
from pacscout.fetch.downloader import Downloader
from pacscout.fetch.watcher import FileWatcher
from pacscout.integration.notifier import LogNotifier, WebhookNotifier
from pacscout.logging_config import configure_logging
from pacscout.middleware.auth import ServiceKeyAuthMiddleware
from pacscout.middleware.error_handler import register_error_handlers
from pacscout.middleware.request_id import RequestIdMiddleware
from pacscout.resolver.script import load_script_engine
from pacscout.routers.health import create_health_router
from pacscout.routers.resolve import create_resolve_router
from pacscout.services.network_monitor import NetworkMonitor
from pacscout.services.resolver import PacResolver

logger = logging.getLogger(__name__)


def build_resolver(settings: PacScoutSettings) -> PacResolver:
    """Wire a PacResolver from settings."""
    notifier = (
        WebhookNotifier(settings.notify_webhook_url, secret=settings.notify_webhook_secret)
        if settings.notify_webhook_url
        else LogNotifier()
    )

    return PacResolver(
        engine=load_script_engine(settings.script_engine),
        # The YAML override is re-read on every reset
        config_loader=functools.partial(load_resolution_config, settings),
        notifier=notifier,
        downloader_factory=functools.partial(
            Downloader,
            timeout_seconds=settings.fetch_timeout_seconds,
            max_bytes=settings.max_script_bytes,
        ),
        discovery_factory=functools.partial(
            Discovery,
            hint_providers=[static_hint(settings.wpad_dhcp_url)],
            timeout_seconds=settings.fetch_timeout_seconds,
            max_bytes=settings.max_script_bytes,
        ),
        watcher_factory=functools.partial(
            FileWatcher, interval_seconds=settings.file_watch_interval_seconds
        ),
        suspend_seconds=settings.suspend_seconds,
        blacklist_ttl_seconds=settings.blacklist_ttl_seconds,
    )


def create_app(settings: PacScoutSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    The resolver is built eagerly so that a malformed script engine path
    fails at startup rather than on the first lookup.
    """
    settings = settings or PacScoutSettings()
    resolver = build_resolver(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        logger.info(
            "Starting PAC resolution service on port %d",
            settings.port,
            extra={"proxy_mode": resolver.config.mode.value},
        )

        monitor = NetworkMonitor(
            resolver.on_network_change,
            interval_seconds=settings.network_poll_interval_seconds,
        )
        monitor_task = asyncio.create_task(monitor.monitor_loop(), name="network-monitor")

        yield

        logger.info("Shutting down PAC resolution service…")
        monitor_task.cancel()
        try:
            await monitor_task
        except asyncio.CancelledError:
            pass

        try:
            await asyncio.wait_for(resolver.aclose(), timeout=settings.graceful_shutdown_seconds)
        except asyncio.TimeoutError:
            logger.warning("Script fetch did not stop within %ds", settings.graceful_shutdown_seconds)

        notifier = resolver.notifier
        if isinstance(notifier, WebhookNotifier):
            await notifier.aclose()

        logger.info("PAC resolution service shut down")

    app = FastAPI(
        title="pacscout",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.resolver = resolver

    register_error_handlers(app)

    # Starlette applies middleware in reverse order of add_middleware calls
    if settings.service_key:
        app.add_middleware(ServiceKeyAuthMiddleware, service_key=settings.service_key)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(create_health_router(resolver=resolver))
    app.include_router(create_resolve_router(resolver=resolver))

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = PacScoutSettings()
    uvicorn.run("pacscout.main:app", host="127.0.0.1", port=settings.port, log_config=None)


app = create_app()
