"""Validation of URLs submitted for proxy resolution."""

from __future__ import annotations

from urllib.parse import urlsplit

from pacscout.middleware.error_handler import InvalidUrlError


def validate_url(url: str) -> str:
    """Check that ``url`` is absolute (scheme and host) and return it stripped.

    Any scheme is accepted: PAC scripts are consulted for ftp, ws and other
    URLs as well as http(s).

    Raises:
        InvalidUrlError: If the URL has no scheme or no host, or contains
            whitespace.
    """
    candidate = url.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        raise InvalidUrlError(f"Invalid URL: {url!r}", url=url)

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid URL: {url!r}", url=url) from exc

    if not parts.scheme or not hostname:
        raise InvalidUrlError(f"URL must be absolute with a host: {url!r}", url=url)

    return candidate
