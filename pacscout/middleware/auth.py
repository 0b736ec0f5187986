"""X-Service-Key authentication middleware.

Only installed when ``PACSCOUT_SERVICE_KEY`` is set. Guards the resolution
and control endpoints (lookups, blacklist feedback, reset, network events);
health endpoints (/health, /readiness, /metrics) stay public.

Uses ``hmac.compare_digest`` for constant-time comparison.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from pacscout.middleware.error_handler import AuthenticationError, _envelope

logger = logging.getLogger(__name__)

_PUBLIC_PATHS: set[str] = {"/health", "/readiness", "/metrics"}


class ServiceKeyAuthMiddleware(BaseHTTPMiddleware):
    """Reject requests whose ``X-Service-Key`` header does not match."""

    def __init__(self, app, service_key: str) -> None:  # noqa: ANN001
        super().__init__(app)
        self._service_key = service_key

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _PUBLIC_PATHS:
            return await call_next(request)

        provided_key = request.headers.get("x-service-key") or ""
        if not hmac.compare_digest(provided_key, self._service_key):
            logger.warning(
                "Rejected request with %s service key",
                "invalid" if provided_key else "missing",
                extra={"target_url": request.url.path},
            )
            return _envelope(
                status_code=AuthenticationError.status_code,
                error=AuthenticationError.message,
            )

        return await call_next(request)
