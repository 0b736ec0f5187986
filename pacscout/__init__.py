"""pacscout — Proxy Auto-Configuration resolution service."""

__version__ = "1.0.0"
