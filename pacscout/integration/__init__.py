"""Outbound integrations — failure notifications."""

from pacscout.integration.notifier import LogNotifier, Notifier, WebhookNotifier

__all__ = ["LogNotifier", "Notifier", "WebhookNotifier"]
