"""Parsing and normalization of PAC directive strings.

A PAC script answers a lookup with text such as::

    PROXY 10.0.0.1:8080; SOCKS5 10.0.0.2:1080; DIRECT

``parse_directives`` turns that into an ordered list of proxy URLs
(``http://10.0.0.1:8080``, ``socks://10.0.0.2:1080``) and ``DIRECT``
markers, dropping unknown modes, malformed addresses and blacklisted
proxies. Anomalies are never errors: the offending segment is skipped.
"""

from __future__ import annotations

from enum import Enum

import httpx

from pacscout.resolver.blacklist import BlacklistCache

DIRECT = "DIRECT"

# Schemes an address may already carry; anything else gets one synthesized
KNOWN_SCHEMES = frozenset(
    {"http", "https", "socks", "socks4", "socks4a", "socks5", "socks5h", "ftp"}
)


class ProxyType(str, Enum):
    """Connection mode named by a directive segment."""

    PROXY = "PROXY"
    SOCKS = "SOCKS"
    DIRECT = "DIRECT"
    UNKNOWN = "UNKNOWN"


_MODES = {
    "PROXY": ProxyType.PROXY,
    "SOCKS": ProxyType.SOCKS,
    "SOCKS5": ProxyType.SOCKS,
    "DIRECT": ProxyType.DIRECT,
}

_DEFAULT_SCHEME = {
    ProxyType.PROXY: "http://",
    ProxyType.SOCKS: "socks://",
}


def proxy_type_for(mode: str) -> ProxyType:
    """Classify a directive mode token, case-insensitively."""
    return _MODES.get(mode.upper(), ProxyType.UNKNOWN)


def normalize_address(proxy_type: ProxyType, address: str) -> str | None:
    """Return the scheme-qualified form of a PROXY/SOCKS address.

    Addresses that already start with a known scheme are returned as-is.
    Otherwise ``http://`` or ``socks://`` is prefixed and the result must be
    a URL with a host and, if given, a port in range; ``None`` means the
    address is unusable.
    """
    scheme, sep, _ = address.partition(":")
    if sep and scheme.lower() in KNOWN_SCHEMES:
        return address

    if not address or any(ch.isspace() for ch in address):
        return None

    candidate = _DEFAULT_SCHEME[proxy_type] + address
    try:
        url = httpx.URL(candidate)
        port = url.port
    except (httpx.InvalidURL, ValueError):
        return None

    if not url.host or (port is not None and not 0 < port <= 65535):
        return None
    return candidate


def _split_segment(segment: str) -> tuple[str, str]:
    mode, sep, address = segment.partition(" ")
    if not sep:
        # A bare token is both mode and address: "PROXY" alone becomes http://PROXY
        return segment, segment
    return mode, address.strip()


def parse_directives(result: str, blacklist: BlacklistCache) -> list[str]:
    """Turn a raw PAC result into an ordered, filtered list of directives.

    Args:
        result: Text the script returned for one URL.
        blacklist: Cache of recently failed proxies. Expired entries met
            during parsing are evicted.

    Returns:
        Proxy URLs and ``DIRECT`` markers in script order. May be empty when
        every candidate was unknown, malformed or blacklisted.
    """
    proxies: list[str] = []

    for raw_segment in result.strip().split(";"):
        segment = raw_segment.strip()
        if not segment:
            continue

        mode, address = _split_segment(segment)
        proxy_type = proxy_type_for(mode)

        if proxy_type == ProxyType.UNKNOWN:
            continue

        if proxy_type == ProxyType.DIRECT:
            proxies.append(DIRECT)
            continue

        normalized = normalize_address(proxy_type, address)
        if normalized is None:
            continue

        # Both spellings are checked so each is looked up (and evicted) once
        blocked_normalized = blacklist.is_blacklisted(normalized)
        blocked_raw = normalized != address and blacklist.is_blacklisted(address)
        if blocked_normalized or blocked_raw:
            continue

        proxies.append(normalized)

    return proxies


def with_direct_fallback(proxies: list[str]) -> list[str]:
    """Return ``proxies``, or ``["DIRECT"]`` if it is empty."""
    return proxies if proxies else [DIRECT]
