"""Global error hierarchy and FastAPI exception handlers.

All resolver-specific errors extend PacScoutError. The three failure kinds
of a resolution attempt (FetchError, DiscoveryExhausted, ScriptError) are
raised by the fetchers and the script capability and handled inside the
resolver; they only reach the HTTP layer when raised directly by a route.

The FastAPI exception handlers catch these errors (plus Pydantic's
RequestValidationError and unhandled exceptions) and return a consistent
JSON envelope: { success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class PacScoutError(Exception):
    """Base error for all pacscout-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class ValidationError(PacScoutError):
    """Payload validation failures — includes field-level details."""

    status_code = 422
    message = "Validation error"


class AuthenticationError(PacScoutError):
    """Invalid or missing service key."""

    status_code = 401
    message = "Invalid or missing service key"


class InvalidUrlError(PacScoutError):
    """The URL to resolve is not an absolute URL."""

    status_code = 422
    message = "Invalid URL"


class FetchError(PacScoutError):
    """The proxy configuration script could not be downloaded."""

    status_code = 502
    message = "Could not download the proxy configuration script"


class DiscoveryExhausted(FetchError):
    """No proxy configuration script was found by auto-discovery."""

    message = "Could not find a usable proxy configuration script"


class ScriptError(PacScoutError):
    """The proxy configuration script failed to load or to evaluate."""

    status_code = 422
    message = "The proxy configuration script is invalid"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _pacscout_error_handler(_request: Request, exc: PacScoutError) -> JSONResponse:
    meta = exc.details if exc.details else None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _envelope(
        status_code=422,
        error="Validation error",
        meta={"fields": field_errors},
    )


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log traceback, return generic 500."""
    logger.error(
        "Unhandled exception: %s\n%s",
        exc,
        traceback.format_exc(),
    )
    return _envelope(status_code=500, error="Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(PacScoutError, _pacscout_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
