"""Pydantic Settings for the PAC resolution service.

All environment variables use the PACSCOUT_ prefix.
Example: PACSCOUT_PROXY_MODE=pac, PACSCOUT_PROXY_CONFIG_SCRIPT=http://intranet/proxy.pac
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings


class ProxyMode(str, Enum):
    """How the location of the proxy configuration script is obtained."""

    NONE = "none"
    WPAD = "wpad"
    PAC = "pac"


class PacScoutSettings(BaseSettings):
    """Service configuration validated from environment variables."""

    # Service
    port: int = 8002
    log_level: str = "INFO"
    service_key: str | None = None  # X-Service-Key; auth disabled when unset

    # Proxy configuration source
    proxy_mode: ProxyMode = ProxyMode.NONE
    proxy_config_script: str | None = None  # Script URL or local path for PAC mode
    proxy_config_path: str = "proxy_config.yaml"  # Optional override file, re-read on reset

    # Resolution policy
    suspend_seconds: int = Field(default=300, ge=0)
    blacklist_ttl_seconds: int = Field(default=1800, ge=0)

    # Script download
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    max_script_bytes: int = Field(default=1024 * 1024, ge=1)
    script_engine: str = ""  # "module:attribute" of a ScriptEngine factory

    # Discovery
    wpad_dhcp_url: str | None = None  # Script URL handed out by DHCP (option 252)

    # Background watchers
    file_watch_interval_seconds: float = Field(default=2.0, gt=0)
    network_poll_interval_seconds: float = Field(default=5.0, gt=0)

    # Notifications
    notify_webhook_url: str | None = None
    notify_webhook_secret: str = ""

    # Shutdown
    graceful_shutdown_seconds: int = Field(default=10, ge=0)

    model_config = {"env_prefix": "PACSCOUT_"}
