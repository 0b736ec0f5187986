"""PAC resolution orchestrator.

Answers "which proxies should be used for this URL" by locating, fetching
and loading the proxy configuration script, then evaluating it per URL.

States (derived from the fields, see ``PacResolver.state``):

- IDLE: no script, no fetch in flight
- FETCHING: fetch issued; lookups are queued and answered on completion
- READY: script loaded; lookups are answered synchronously
- SUSPENDED: a fetch or load failed recently; every lookup is DIRECT until
  the suspend window elapses (checked lazily on the next lookup)

All methods run on the event loop thread and never block. At most one
fetch is in flight; each is tagged with a generation number so that a
completion arriving after ``reset()`` or after being superseded is
ignored.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlsplit

from pacscout.config.proxy_config import ResolutionConfig
from pacscout.config.settings import ProxyMode
from pacscout.fetch.base import Fetcher
from pacscout.fetch.discovery import Discovery
from pacscout.fetch.downloader import Downloader
from pacscout.fetch.watcher import FileWatcher
from pacscout.integration.notifier import (
    DOWNLOAD_ERROR,
    EVALUATION_ERROR,
    SCRIPT_ERROR,
    LogNotifier,
    Notifier,
)
from pacscout.logging_config import request_id_var
from pacscout.middleware.error_handler import FetchError, PacScoutError, ScriptError
from pacscout.resolver.blacklist import BlacklistCache
from pacscout.resolver.directives import DIRECT, parse_directives, with_direct_fallback
from pacscout.resolver.script import PacScript, ScriptEngine, decode_script
from pacscout.services.network_monitor import NetworkEvent, NetworkState

logger = logging.getLogger(__name__)

# Receives either the full list (want_all) or the first directive
ReplyHandle = Callable[[Any], None]


class ResolverState(str, Enum):
    """Resolution state machine states."""

    IDLE = "idle"
    FETCHING = "fetching"
    READY = "ready"
    SUSPENDED = "suspended"


@dataclass
class QueuedRequest:
    """A lookup waiting for the in-flight fetch to complete."""

    reply: ReplyHandle
    url: str
    want_all: bool = True


def _as_url(text: str) -> str:
    text = text.strip()
    if text.startswith("/"):
        return PurePosixPath(text).as_uri()
    return text


def urls_match(a: str, b: str) -> bool:
    """Compare two URLs ignoring scheme/host case and a trailing slash.

    A bare absolute path matches its ``file://`` URL.
    """
    first, second = urlsplit(_as_url(a)), urlsplit(_as_url(b))
    return (
        first.scheme.lower() == second.scheme.lower()
        and first.netloc.lower() == second.netloc.lower()
        and first.path.rstrip("/") == second.path.rstrip("/")
        and first.query == second.query
    )


class PacResolver:
    """Owns the script, the fetcher, the request queue and the blacklist.

    Parameters
    ----------
    engine:
        Compiles script text into an evaluatable ``PacScript``.
    config_loader:
        Returns the current ``ResolutionConfig``; called at construction and
        on every ``reset()``.
    notifier:
        Receives human-readable failure notifications.
    downloader_factory / discovery_factory:
        Build the fetcher for explicit-script and WPAD modes.
    watcher_factory:
        Builds the change-watch used for local script files.
    suspend_seconds:
        Cooldown after a failed fetch or load (default 300).
    blacklist_ttl_seconds:
        How long a reported proxy stays excluded (default 1800).
    clock:
        Monotonic time source in seconds.
    """

    def __init__(
        self,
        *,
        engine: ScriptEngine,
        config_loader: Callable[[], ResolutionConfig],
        notifier: Notifier | None = None,
        downloader_factory: Callable[[], Fetcher] = Downloader,
        discovery_factory: Callable[[], Fetcher] = Discovery,
        watcher_factory: Callable[[Callable[[str], None]], FileWatcher] = FileWatcher,
        suspend_seconds: float = 300,
        blacklist_ttl_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._config_loader = config_loader
        self._notifier = notifier or LogNotifier()
        self._downloader_factory = downloader_factory
        self._discovery_factory = discovery_factory
        self._watcher_factory = watcher_factory
        self._suspend_seconds = suspend_seconds
        self._clock = clock

        self._config = config_loader()
        self._blacklist = BlacklistCache(ttl_seconds=blacklist_ttl_seconds, clock=clock)

        self._fetcher: Fetcher | None = None
        self._fetcher_mode: ProxyMode | None = None
        self._watcher: FileWatcher | None = None
        self._script: PacScript | None = None
        self._queue: list[QueuedRequest] = []
        self._suspended_at: float | None = None

        self._generation = 0
        self._in_flight: int | None = None  # generation of the running fetch
        self._fetch_task: asyncio.Task[None] | None = None
        self._fetch_started: float = 0.0

        # Stats
        self._fetch_count = 0
        self._failure_count = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ResolverState:
        if self._suspended_at is not None and not self._suspend_elapsed():
            return ResolverState.SUSPENDED
        if self._script is not None:
            return ResolverState.READY
        if self._in_flight is not None:
            return ResolverState.FETCHING
        return ResolverState.IDLE

    @property
    def config(self) -> ResolutionConfig:
        return self._config

    @property
    def blacklist(self) -> BlacklistCache:
        return self._blacklist

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def script_url(self) -> str | None:
        return self._fetcher.script_url if self._fetcher else None

    # ------------------------------------------------------------------
    # Inbound operations
    # ------------------------------------------------------------------

    def resolve(self, url: str, reply: ReplyHandle, want_all: bool = True) -> Any:
        """Answer a lookup now, or queue it and answer through ``reply`` later.

        Returns
        -------
        The list of directives (``want_all``) or the first one, when the
        answer is available immediately; ``None`` when the answer will be
        delivered to ``reply`` once the pending fetch completes.
        """
        if self._suspended_at is not None:
            if not self._suspend_elapsed():
                return self._answer([DIRECT], want_all)
            logger.info("Suspend window elapsed, resuming proxy resolution")
            self._suspended_at = None

        # Never use a proxy for the script itself
        script_url = self.script_url
        if script_url and urls_match(url, script_url):
            return self._answer([DIRECT], want_all)

        if self._script is not None:
            return self._answer(self._handle_request(url), want_all)

        if self._in_flight is not None or self._start_fetch():
            self._queue.append(QueuedRequest(reply=reply, url=url, want_all=want_all))
            logger.debug(
                "Queued lookup pending script fetch",
                extra={"target_url": url, "queued_requests": len(self._queue)},
            )
            return None

        return self._answer([DIRECT], want_all)

    async def proxies_for_url(self, url: str) -> list[str]:
        """All directives for ``url``, in preference order."""
        return await self._resolve_async(url, want_all=True)

    async def proxy_for_url(self, url: str) -> str:
        """The preferred directive for ``url``."""
        return await self._resolve_async(url, want_all=False)

    def blacklist_proxy(self, address: str) -> None:
        """Record that ``address`` just failed for the caller."""
        self._blacklist.add(address)

    def reset(self) -> None:
        """Drop script, fetcher, watch, blacklist and suspension; reload config.

        Lookups still queued are answered DIRECT; a fetch still running is
        cancelled and its completion ignored.
        """
        if self._fetch_task is not None and not self._fetch_task.done():
            self._fetch_task.cancel()
        self._fetch_task = None
        self._generation += 1
        self._in_flight = None

        pending, self._queue = self._queue, []
        for request in pending:
            self._deliver(request, self._answer([DIRECT], request.want_all))

        self._script = None
        self._fetcher = None
        self._fetcher_mode = None
        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None
        self._blacklist.clear()
        self._suspended_at = None

        self._config = self._config_loader()
        logger.info(
            "Resolver reset",
            extra={"proxy_mode": self._config.mode.value, "generation": self._generation},
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_fetch_complete(
        self,
        generation: int,
        script: bytes | None = None,
        error: PacScoutError | None = None,
    ) -> None:
        """Handle the outcome of a fetch attempt and answer queued lookups.

        Completions whose generation is not the current one are ignored.
        """
        if generation != self._generation:
            logger.debug("Ignoring stale fetch completion", extra={"generation": generation})
            return

        self._in_flight = None
        duration_ms = round((self._clock() - self._fetch_started) * 1000, 1)

        if error is None:
            try:
                self._script = self._load_script(script or b"")
            except ScriptError as exc:
                error = exc
                logger.warning(
                    "Proxy configuration script is invalid: %s",
                    exc.message,
                    extra={"script_url": self.script_url, "error_reason": exc.message},
                )
                self._notifier.notify(
                    SCRIPT_ERROR,
                    f"The proxy configuration script is invalid:\n{exc.message}",
                )
        else:
            logger.warning(
                "Proxy configuration script fetch failed: %s",
                error.message,
                extra={"script_url": self.script_url, "error_reason": error.message},
            )
            self._notifier.notify(DOWNLOAD_ERROR, error.message)

        pending, self._queue = self._queue, []

        if error is None:
            logger.info(
                "Proxy configuration script loaded",
                extra={
                    "script_url": self.script_url,
                    "duration_ms": duration_ms,
                    "queued_requests": len(pending),
                },
            )
            for request in pending:
                self._deliver(request, self._answer(self._handle_request(request.url), request.want_all))
            return

        for request in pending:
            self._deliver(request, self._answer([DIRECT], request.want_all))

        self._failure_count += 1
        self._suspended_at = self._clock()
        logger.info(
            "Proxy resolution suspended for %ss",
            self._suspend_seconds,
            extra={"duration_ms": duration_ms, "queued_requests": len(pending)},
        )

    def on_network_change(self, event: NetworkEvent) -> None:
        """Start over when a network configuration becomes (re)defined."""
        if event.state == NetworkState.DEFINED:
            logger.info("Network %s defined, resetting resolver", event.interface)
            self.reset()

    def on_watched_file_changed(self, path: str) -> None:
        """Re-arm the watch on ``path`` and reload the script from it."""
        if self._watcher is None or self._fetcher is None:
            logger.debug("Ignoring change of %s, no local script is configured", path)
            return

        self._watcher.watch(path)
        self._issue_fetch(path)

    # ------------------------------------------------------------------
    # Stats / lifecycle
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Return resolver statistics for the health and metrics endpoints."""
        suspended_remaining = 0.0
        if self.state == ResolverState.SUSPENDED and self._suspended_at is not None:
            suspended_remaining = self._suspend_seconds - (self._clock() - self._suspended_at)

        return {
            "state": self.state.value,
            "mode": self._config.mode.value,
            "script_url": self.script_url,
            "generation": self._generation,
            "fetch_in_flight": self._in_flight is not None,
            "queue_depth": len(self._queue),
            "fetch_count": self._fetch_count,
            "failure_count": self._failure_count,
            "suspended_remaining_seconds": round(max(suspended_remaining, 0.0), 1),
            "blacklist_size": len(self._blacklist),
        }

    async def aclose(self) -> None:
        """Cancel background work; queued lookups are answered DIRECT."""
        task = self._fetch_task
        self.reset()
        if task is not None:
            await asyncio.wait([task])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _suspend_elapsed(self) -> bool:
        assert self._suspended_at is not None
        return self._clock() - self._suspended_at >= self._suspend_seconds

    @staticmethod
    def _answer(proxies: list[str], want_all: bool) -> Any:
        return proxies if want_all else proxies[0]

    async def _resolve_async(self, url: str, want_all: bool) -> Any:
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def reply(answer: Any) -> None:
            if not future.done():
                future.set_result(answer)

        answer = self.resolve(url, reply, want_all=want_all)
        if answer is not None:
            return answer
        return await future

    def _deliver(self, request: QueuedRequest, answer: Any) -> None:
        try:
            request.reply(answer)
        except Exception:
            logger.exception("Reply callback error", extra={"target_url": request.url})

    def _start_fetch(self) -> bool:
        """Ensure the fetcher matching the config exists and issue a fetch.

        Returns False when no proxy configuration script is configured.
        """
        config = self._config
        if config.mode == ProxyMode.NONE:
            return False

        if self._fetcher is None or self._fetcher_mode != config.mode:
            factory = (
                self._discovery_factory if config.mode == ProxyMode.WPAD else self._downloader_factory
            )
            self._fetcher = factory()
            self._fetcher_mode = config.mode

        local_path = config.local_path
        if local_path is not None:
            if self._watcher is None:
                self._watcher = self._watcher_factory(self.on_watched_file_changed)
            self.on_watched_file_changed(local_path)
            return True

        if self._watcher is not None:
            self._watcher.close()
            self._watcher = None

        self._issue_fetch(config.script_url if config.mode == ProxyMode.PAC else None)
        return True

    def _issue_fetch(self, source: str | None) -> None:
        assert self._fetcher is not None
        previous = self._fetch_task
        if previous is not None and not previous.done():
            previous.cancel()
        else:
            previous = None

        self._generation += 1
        self._in_flight = self._generation
        self._fetch_count += 1
        self._fetch_started = self._clock()

        logger.info(
            "Fetching proxy configuration script",
            extra={
                "proxy_mode": self._config.mode.value,
                "script_url": source,
                "generation": self._generation,
            },
        )
        self._fetch_task = asyncio.get_running_loop().create_task(
            self._run_fetch(self._generation, self._fetcher, source, previous),
            name=f"pac-fetch-{self._generation}",
        )

    async def _run_fetch(
        self,
        generation: int,
        fetcher: Fetcher,
        source: str | None,
        previous: asyncio.Task[None] | None,
    ) -> None:
        # The fetch serves every queued lookup, not the request that started it
        request_id_var.set(None)

        # A superseded fetch must release the fetcher before it is reused
        if previous is not None:
            await asyncio.wait([previous])

        try:
            content = await fetcher.fetch(source)
        except PacScoutError as exc:
            self.on_fetch_complete(generation, error=exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error fetching proxy configuration script")
            self.on_fetch_complete(generation, error=FetchError(str(exc)))
            return

        self.on_fetch_complete(generation, script=content)

    def _load_script(self, content: bytes) -> PacScript:
        charset = self._fetcher.charset if self._fetcher else None
        source = decode_script(content, charset)
        try:
            return self._engine.compile(source)
        except ScriptError:
            raise
        except Exception as exc:
            logger.exception("Script engine failed to compile the script")
            raise ScriptError(str(exc) or type(exc).__name__) from exc

    def _handle_request(self, url: str) -> list[str]:
        assert self._script is not None
        try:
            result = self._script.evaluate(url)
            if not isinstance(result, str):
                raise ScriptError(f"FindProxyForURL returned {type(result).__name__}, not a string")
        except Exception as exc:
            message = exc.message if isinstance(exc, ScriptError) else str(exc)
            logger.error(
                "Proxy configuration script failed for URL: %s",
                message,
                extra={"target_url": url, "error_reason": message},
            )
            self._notifier.notify(
                EVALUATION_ERROR,
                f"The proxy configuration script returned an error:\n{message}",
            )
            return [DIRECT]

        return with_direct_fallback(parse_directives(result, self._blacklist))
