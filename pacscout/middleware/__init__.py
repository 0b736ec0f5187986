"""Middleware package — error hierarchy, auth, and request ID."""

from pacscout.middleware.auth import ServiceKeyAuthMiddleware
from pacscout.middleware.error_handler import (
    AuthenticationError,
    DiscoveryExhausted,
    FetchError,
    InvalidUrlError,
    PacScoutError,
    ScriptError,
    ValidationError,
    register_error_handlers,
)
from pacscout.middleware.request_id import RequestIdMiddleware

__all__ = [
    "AuthenticationError",
    "DiscoveryExhausted",
    "FetchError",
    "InvalidUrlError",
    "PacScoutError",
    "RequestIdMiddleware",
    "ScriptError",
    "ServiceKeyAuthMiddleware",
    "ValidationError",
    "register_error_handlers",
]
