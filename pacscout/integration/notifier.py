"""Outbound notifications for script download and evaluation failures.

The resolver reports three events: ``download-error`` (the script could not
be fetched or discovered), ``script-error`` (the script does not load) and
``evaluation-error`` (a loaded script failed for one URL). How they reach a
user is up to the presentation layer; this module logs them and can
forward them as HMAC-SHA256 signed webhooks.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Protocol

import httpx

logger = logging.getLogger(__name__)

COMPONENT_NAME = "pacscout"

DOWNLOAD_ERROR = "download-error"
SCRIPT_ERROR = "script-error"
EVALUATION_ERROR = "evaluation-error"


class Notifier(Protocol):
    """Receives human-readable failure notifications."""

    def notify(self, event: str, message: str) -> None: ...


class LogNotifier:
    """Notifier that only writes the message to the log."""

    def notify(self, event: str, message: str) -> None:
        logger.warning("[%s] %s", event, message, extra={"error_reason": event})


class WebhookNotifier(LogNotifier):
    """Logs notifications and delivers them as signed webhook callbacks.

    Parameters
    ----------
    url:
        Callback URL receiving the JSON payload.
    secret:
        Shared secret for the ``X-Webhook-Signature`` HMAC-SHA256.
    timeout_seconds:
        HTTP timeout per delivery attempt (default 10).
    max_retries:
        Maximum delivery attempts (default 3).
    backoff_base:
        Base backoff in seconds (default 2). Schedule: 2s, 4s.
    """

    def __init__(
        self,
        url: str,
        secret: str = "",
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 2.0,
    ) -> None:
        self._url = url
        self._secret = secret
        self._timeout_seconds = timeout_seconds
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._pending: set[asyncio.Task[bool]] = set()

    def notify(self, event: str, message: str) -> None:
        """Log the event and schedule delivery without waiting for it."""
        super().notify(event, message)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, webhook for %s not sent", event)
            return

        task = loop.create_task(self.deliver(event, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def compute_signature(self, payload_bytes: bytes) -> str:
        """Compute HMAC-SHA256 signature for a payload."""
        return hmac.new(
            self._secret.encode("utf-8"),
            payload_bytes,
            hashlib.sha256,
        ).hexdigest()

    def build_payload(self, event: str, message: str) -> dict:
        return {
            "event": event,
            "message": message,
            "component": COMPONENT_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def deliver(self, event: str, message: str) -> bool:
        """Deliver one signed notification with retries.

        Returns
        -------
        bool
            True if delivery succeeded, False if all retries exhausted.
        """
        payload = self.build_payload(event, message)
        payload_bytes = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        signature = self.compute_signature(payload_bytes)

        last_exception: Exception | None = None

        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self._url,
                        content=payload_bytes,
                        headers={
                            "Content-Type": "application/json",
                            "X-Webhook-Signature": signature,
                        },
                        timeout=self._timeout_seconds,
                    )

                if response.status_code < 400:
                    logger.debug("Notification %s delivered to %s", event, self._url)
                    return True

                last_exception = httpx.HTTPStatusError(
                    f"Notification delivery returned {response.status_code}",
                    request=response.request,
                    response=response,
                )

            except httpx.HTTPError as exc:
                last_exception = exc

            if attempt < self._max_retries - 1:
                backoff = self._backoff_base * (2**attempt)
                logger.warning(
                    "Notification delivery failed (attempt %d/%d), retrying in %.0fs",
                    attempt + 1,
                    self._max_retries,
                    backoff,
                )
                await asyncio.sleep(backoff)

        logger.error(
            "Notification %s not delivered after %d attempts: %s",
            event,
            self._max_retries,
            last_exception,
        )
        return False

    async def aclose(self) -> None:
        """Cancel deliveries still in flight."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
