"""Pydantic request models for the resolution and control endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from pacscout.services.network_monitor import NetworkState


class BlacklistRequest(BaseModel):
    """Feedback that a proxy returned by a lookup did not work."""

    address: str = Field(..., min_length=1)


class NetworkEventRequest(BaseModel):
    """A network configuration change reported by an external monitor."""

    interface: str = Field(..., min_length=1)
    state: NetworkState
