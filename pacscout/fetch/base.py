"""Fetcher contract shared by the direct downloader and auto-discovery."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Fetcher(ABC):
    """Asynchronously obtains the bytes of a proxy configuration script.

    At most one fetch may be outstanding per instance; the resolver never
    starts a second one, and a caller that does gets a ``RuntimeError``.
    """

    def __init__(self) -> None:
        self._script_url: str | None = None
        self._charset: str | None = None
        self._busy = False

    @property
    def script_url(self) -> str | None:
        """URL of the script being or last fetched (never proxied)."""
        return self._script_url

    @property
    def charset(self) -> str | None:
        """Charset declared for the last fetched script, if any."""
        return self._charset

    @property
    def busy(self) -> bool:
        return self._busy

    async def fetch(self, source: str | None) -> bytes:
        """Fetch the script.

        Args:
            source: Script URL or local path. Ignored by discovery, which
                locates the script itself.

        Raises:
            FetchError: The script could not be obtained.
            RuntimeError: Another fetch on this instance is still running.
        """
        if self._busy:
            raise RuntimeError(f"{type(self).__name__} already has a fetch in progress")

        self._busy = True
        self._charset = None
        try:
            return await self._fetch(source)
        finally:
            self._busy = False

    @abstractmethod
    async def _fetch(self, source: str | None) -> bytes:
        """Variant-specific fetch implementation."""
