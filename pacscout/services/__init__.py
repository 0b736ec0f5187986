"""Resolution orchestrator and network monitoring."""

from pacscout.services.network_monitor import NetworkEvent, NetworkMonitor, NetworkState
from pacscout.services.resolver import PacResolver, QueuedRequest, ResolverState

__all__ = [
    "NetworkEvent",
    "NetworkMonitor",
    "NetworkState",
    "PacResolver",
    "QueuedRequest",
    "ResolverState",
]
