"""Validators for resolution request inputs."""

from pacscout.validators.url_validator import validate_url

__all__ = ["validate_url"]
