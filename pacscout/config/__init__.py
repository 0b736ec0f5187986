"""Configuration module — settings and the proxy configuration source."""

from pacscout.config.proxy_config import ResolutionConfig, load_resolution_config
from pacscout.config.settings import PacScoutSettings, ProxyMode

__all__ = [
    "PacScoutSettings",
    "ProxyMode",
    "ResolutionConfig",
    "load_resolution_config",
]
