"""Public models for the resolution service."""

from pacscout.models.requests import BlacklistRequest, NetworkEventRequest
from pacscout.models.responses import ApiResponse

__all__ = [
    "ApiResponse",
    "BlacklistRequest",
    "NetworkEventRequest",
]
