"""Network interface monitor.

Discovered script URLs and cached results belong to the network they were
obtained on. The monitor polls the host's interfaces and emits a
``DEFINED`` event whenever an interface appears (brought up, resumed from
suspend, re-plugged), which makes the resolver start over.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class NetworkState(str, Enum):
    """State of a network configuration as reported by an event source."""

    UNDEFINED = "undefined"
    DEFINED = "defined"
    DISCOVERED = "discovered"
    ACTIVE = "active"


@dataclass(frozen=True)
class NetworkEvent:
    """A change of one network interface."""

    interface: str
    state: NetworkState


def _interface_names() -> set[str]:
    return {name for _, name in socket.if_nameindex()}


class NetworkMonitor:
    """Polls interface names and reports newly defined interfaces.

    Args:
        callback: Receives a ``NetworkEvent`` for each new interface.
        interval_seconds: Delay between polls (default 5).
        list_interfaces: Returns the current interface names.
    """

    def __init__(
        self,
        callback: Callable[[NetworkEvent], None],
        interval_seconds: float = 5.0,
        list_interfaces: Callable[[], set[str]] = _interface_names,
    ) -> None:
        self._callback = callback
        self._interval_seconds = interval_seconds
        self._list_interfaces = list_interfaces
        self._known: set[str] | None = None

    def poll(self) -> list[NetworkEvent]:
        """Run one poll, invoke the callback per new interface, return the events.

        The first poll only records the baseline.
        """
        try:
            current = self._list_interfaces()
        except OSError as exc:
            logger.warning("Could not list network interfaces: %s", exc)
            return []

        if self._known is None:
            self._known = current
            return []

        events = [
            NetworkEvent(interface=name, state=NetworkState.DEFINED)
            for name in sorted(current - self._known)
        ]
        gone = self._known - current
        if gone:
            logger.info("Network interfaces went away: %s", ", ".join(sorted(gone)))
        self._known = current

        for event in events:
            logger.info("Network interface defined: %s", event.interface)
            self._callback(event)
        return events

    async def monitor_loop(self) -> None:
        """Poll every ``interval_seconds`` until cancelled."""
        self.poll()
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                self.poll()
            except Exception:
                logger.exception("Network change handler failed")
