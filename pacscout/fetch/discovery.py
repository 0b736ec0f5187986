"""Web Proxy Auto-Discovery (WPAD).

Lookup order:
1. DHCP hints — providers returning a script URL handed out by the network
   (option 252), tried in order.
2. DNS — ``http://wpad.<domain>/wpad.dat`` for the host's domain, then for
   each parent domain, stopping before a bare top-level domain. Candidates
   whose host does not resolve are skipped without a download attempt.

The first candidate that downloads becomes the script URL.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Awaitable, Callable, Sequence
from urllib.parse import urlparse

from pacscout.fetch.downloader import Downloader
from pacscout.middleware.error_handler import DiscoveryExhausted, FetchError

logger = logging.getLogger(__name__)

HintProvider = Callable[[], Awaitable[str | None]]


def static_hint(url: str | None) -> HintProvider:
    """Hint provider that always answers with a fixed (configured) URL."""

    async def _provider() -> str | None:
        return url

    return _provider


def wpad_candidates(fqdn: str) -> list[str]:
    """Build the DNS candidate URLs for a fully qualified host name.

    ``host.dept.example.com`` yields ``wpad.dept.example.com`` then
    ``wpad.example.com``; a host without a domain yields nothing.
    """
    labels = [label for label in fqdn.strip().strip(".").lower().split(".") if label]
    domain = labels[1:]
    candidates: list[str] = []
    while len(domain) >= 2:
        candidates.append(f"http://wpad.{'.'.join(domain)}/wpad.dat")
        domain = domain[1:]
    return candidates


async def _host_resolves(host: str) -> bool:
    loop = asyncio.get_running_loop()
    try:
        await loop.getaddrinfo(host, 80, type=socket.SOCK_STREAM)
    except (socket.gaierror, OSError):
        return False
    return True


class Discovery(Downloader):
    """Locates the script via WPAD, then downloads it like ``Downloader``.

    Parameters
    ----------
    hint_providers:
        Async callables returning a script URL or ``None``, tried first.
    hostname:
        Returns the host's fully qualified name (default ``socket.getfqdn``,
        run in a worker thread).
    resolve_host:
        Async predicate telling whether a host name resolves.
    """

    def __init__(
        self,
        *,
        hint_providers: Sequence[HintProvider] = (),
        hostname: Callable[[], str] = socket.getfqdn,
        resolve_host: Callable[[str], Awaitable[bool]] = _host_resolves,
        timeout_seconds: float = 30.0,
        max_bytes: int = 1024 * 1024,
    ) -> None:
        super().__init__(timeout_seconds=timeout_seconds, max_bytes=max_bytes)
        self._hint_providers = list(hint_providers)
        self._hostname = hostname
        self._resolve_host = resolve_host

    async def _fetch(self, source: str | None) -> bytes:
        attempted: list[str] = []

        for provider in self._hint_providers:
            try:
                url = await provider()
            except OSError as exc:
                logger.debug("DHCP hint provider failed: %s", exc)
                continue
            if not url:
                continue
            attempted.append(url)
            content = await self._try(url)
            if content is not None:
                return content

        fqdn = await asyncio.to_thread(self._hostname)
        for url in wpad_candidates(fqdn):
            host = urlparse(url).hostname or ""
            if not await self._resolve_host(host):
                logger.debug("WPAD candidate %s does not resolve", host)
                continue
            attempted.append(url)
            content = await self._try(url)
            if content is not None:
                return content

        self._script_url = None
        logger.warning("WPAD discovery exhausted after %d candidates", len(attempted))
        raise DiscoveryExhausted(attempted=attempted)

    async def _try(self, url: str) -> bytes | None:
        try:
            content = await super()._fetch(url)
        except FetchError as exc:
            logger.debug("WPAD candidate %s failed: %s", url, exc.message)
            return None
        logger.info("Discovered proxy configuration script at %s", url)
        return content
