"""Directive parsing, proxy blacklist, and the script engine interface."""

from pacscout.resolver.blacklist import BlacklistCache, BlacklistEntry
from pacscout.resolver.directives import (
    DIRECT,
    ProxyType,
    parse_directives,
    proxy_type_for,
    with_direct_fallback,
)
from pacscout.resolver.script import (
    PacScript,
    ScriptEngine,
    UnconfiguredEngine,
    decode_script,
    load_script_engine,
)

__all__ = [
    "DIRECT",
    "BlacklistCache",
    "BlacklistEntry",
    "PacScript",
    "ProxyType",
    "ScriptEngine",
    "UnconfiguredEngine",
    "decode_script",
    "load_script_engine",
    "parse_directives",
    "proxy_type_for",
    "with_direct_fallback",
]
