"""Time-based blacklist of proxy addresses that recently failed.

Entries are inserted by external feedback ("this proxy did not work") and
expire lazily: an entry older than the TTL is evicted the next time it is
looked up, never by a background sweep.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class BlacklistEntry:
    """A proxy address and the monotonic time it was last reported failing."""

    address: str
    failed_at: float


class BlacklistCache:
    """Proxy address → last failure timestamp, with TTL-based expiry.

    Args:
        ttl_seconds: How long a reported address stays excluded (default 1800).
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        ttl_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, BlacklistEntry] = {}

    def add(self, address: str) -> None:
        """Insert the address, or refresh its failure time if already present."""
        self._entries[address] = BlacklistEntry(address=address, failed_at=self._clock())
        logger.info("Proxy blacklisted: %s", address)

    def is_blacklisted(self, address: str) -> bool:
        """Check whether the address is currently excluded.

        An entry whose age exceeds the TTL is evicted and reported as not
        blacklisted.
        """
        entry = self._entries.get(address)
        if entry is None:
            return False

        if self._clock() - entry.failed_at > self._ttl_seconds:
            del self._entries[address]
            logger.debug("Blacklisting expired for proxy: %s", address)
            return False

        return True

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, address: object) -> bool:
        return address in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict:
        """Return blacklist statistics for the metrics endpoint."""
        now = self._clock()
        return {
            "size": len(self._entries),
            "ttl_seconds": self._ttl_seconds,
            "entries": [
                {"address": e.address, "age_seconds": round(now - e.failed_at, 1)}
                for e in self._entries.values()
            ],
        }
