"""Resolution configuration model and loader.

The active configuration decides which fetcher the resolver uses. It is
read from the settings (environment) and may be overridden by a small YAML
file so that the proxy mode can be changed at runtime followed by a reset:

    mode: pac
    script_url: file:///etc/proxy.pac
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

import yaml
from pydantic import BaseModel, model_validator

from pacscout.config.settings import PacScoutSettings, ProxyMode

logger = logging.getLogger(__name__)


class ResolutionConfig(BaseModel):
    """Where the proxy configuration script comes from."""

    mode: ProxyMode = ProxyMode.NONE
    script_url: str | None = None

    @model_validator(mode="after")
    def _pac_mode_needs_url(self) -> ResolutionConfig:
        if self.mode == ProxyMode.PAC and not self.script_url:
            raise ValueError("PAC mode requires a script_url")
        return self

    @property
    def is_local_file(self) -> bool:
        """True when the script is read from the local filesystem."""
        if self.mode != ProxyMode.PAC or not self.script_url:
            return False
        scheme = urlparse(self.script_url).scheme
        return scheme in ("", "file")

    @property
    def local_path(self) -> str | None:
        if not self.is_local_file:
            return None
        parsed = urlparse(self.script_url)
        if parsed.scheme == "file":
            return unquote(parsed.path)
        return self.script_url


def load_resolution_config(settings: PacScoutSettings) -> ResolutionConfig:
    """Build the active ResolutionConfig.

    Args:
        settings: Service settings providing the defaults and the path of the
            optional YAML override file.

    Returns:
        The configuration from the YAML file when it exists and is valid,
        otherwise the configuration described by the settings.
    """
    try:
        fallback = ResolutionConfig(
            mode=settings.proxy_mode,
            script_url=settings.proxy_config_script,
        )
    except ValueError as exc:
        logger.error("Invalid proxy settings: %s — proxies disabled", exc)
        fallback = ResolutionConfig()

    path = Path(settings.proxy_config_path)
    if not path.exists():
        return fallback

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Failed to read proxy configuration at %s: %s", path, exc)
        return fallback

    if not isinstance(raw, dict):
        logger.warning("Proxy configuration at %s is not a mapping — using settings", path)
        return fallback

    try:
        config = ResolutionConfig.model_validate(raw)
    except ValueError as exc:
        logger.error("Invalid proxy configuration at %s: %s — using settings", path, exc)
        return fallback

    logger.info("Loaded proxy configuration from %s (mode=%s)", path, config.mode.value)
    return config
