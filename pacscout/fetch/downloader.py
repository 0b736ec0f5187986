"""Direct download of a proxy configuration script from a known URL.

http(s) URLs are fetched with httpx; ``file://`` URLs and bare paths are
read from disk in a worker thread so the event loop never blocks. A local
script's ``script_url`` is its ``file://`` URL either way.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from pacscout.fetch.base import Fetcher
from pacscout.middleware.error_handler import FetchError

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = {"http", "https"}


class Downloader(Fetcher):
    """Fetches a script from an explicit URL or local path.

    Parameters
    ----------
    timeout_seconds:
        HTTP timeout per download (default 30).
    max_bytes:
        Largest script accepted (default 1 MiB).
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        max_bytes: int = 1024 * 1024,
    ) -> None:
        super().__init__()
        self._timeout_seconds = timeout_seconds
        self._max_bytes = max_bytes

    async def _fetch(self, source: str | None) -> bytes:
        if not source:
            raise FetchError("No proxy configuration script URL is configured")

        self._script_url = source
        parsed = urlparse(source)

        if parsed.scheme in ("", "file"):
            path = unquote(parsed.path) if parsed.scheme == "file" else source
            # Local scripts are always reported by their file:// URL
            self._script_url = Path(path).absolute().as_uri()
            return await self._read_file(path)

        if parsed.scheme.lower() not in _REMOTE_SCHEMES:
            raise FetchError(
                f"Unsupported scheme for proxy configuration script: {parsed.scheme}",
                url=source,
            )

        return await self._download(source)

    async def _download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.warning("Script download failed for %s: %s", url, exc)
            raise FetchError(
                f"Could not download the proxy configuration script:\n{exc}",
                url=url,
            ) from exc

        if not 200 <= response.status_code < 300:
            raise FetchError(
                "Could not download the proxy configuration script:\n"
                f"HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        content = response.content
        self._check_payload(url, content)
        self._charset = response.charset_encoding
        logger.info("Downloaded proxy configuration script from %s (%d bytes)", url, len(content))
        return content

    async def _read_file(self, path: str) -> bytes:
        try:
            content = await asyncio.to_thread(Path(path).read_bytes)
        except OSError as exc:
            raise FetchError(
                f"Could not read the proxy configuration script:\n{exc.strerror or exc}",
                url=path,
            ) from exc

        self._check_payload(path, content)
        logger.info("Loaded proxy configuration script from %s (%d bytes)", path, len(content))
        return content

    def _check_payload(self, url: str, content: bytes) -> None:
        if not content:
            raise FetchError("The proxy configuration script is empty", url=url)
        if len(content) > self._max_bytes:
            raise FetchError(
                f"The proxy configuration script exceeds {self._max_bytes} bytes",
                url=url,
            )
