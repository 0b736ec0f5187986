"""Shared test fixtures, fakes and hypothesis strategies for the pacscout test suite."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable

import pytest
from hypothesis import strategies as st

from pacscout.config.proxy_config import ResolutionConfig
from pacscout.config.settings import PacScoutSettings, ProxyMode
from pacscout.fetch.base import Fetcher
from pacscout.middleware.error_handler import FetchError, ScriptError
from pacscout.resolver.blacklist import BlacklistCache
from pacscout.resolver.directives import KNOWN_SCHEMES
from pacscout.services.resolver import PacResolver

PAC_URL = "http://config.example.com/proxy.pac"
WPAD_URL = "http://wpad.example.com/wpad.dat"
DEFAULT_RESULT = "PROXY 10.0.0.1:8080; SOCKS5 10.0.0.2:1080; DIRECT"


# ---------------------------------------------------------------------------
# Settings isolated from the process environment and working directory
# ---------------------------------------------------------------------------

@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Clear PACSCOUT_ env vars and run from an empty directory."""
    for key in list(os.environ):
        if key.startswith("PACSCOUT_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def service_settings(clean_env) -> PacScoutSettings:
    """Test settings with safe defaults."""
    return PacScoutSettings(
        proxy_mode=ProxyMode.PAC,
        proxy_config_script=PAC_URL,
        proxy_config_path=str(clean_env / "proxy_config.yaml"),
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher(Fetcher):
    """Fetcher whose outcome is decided by the test.

    Queued ``outcomes`` (bytes or an exception) are used first; otherwise the
    fetch waits until ``succeed()`` or ``fail()`` is called.
    """

    def __init__(self, discovered_url: str = WPAD_URL) -> None:
        super().__init__()
        self.discovered_url = discovered_url
        self.calls: list[str | None] = []
        self.outcomes: list[bytes | Exception] = []
        self.pending: asyncio.Future[bytes] | None = None

    async def _fetch(self, source: str | None) -> bytes:
        self.calls.append(source)
        self._script_url = source or self.discovered_url
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        self.pending = asyncio.get_running_loop().create_future()
        return await self.pending

    def succeed(self, content: bytes = b"function FindProxyForURL(url, host) {}") -> None:
        assert self.pending is not None and not self.pending.done()
        self.pending.set_result(content)

    def fail(self, error: Exception | None = None) -> None:
        assert self.pending is not None and not self.pending.done()
        self.pending.set_exception(error or FetchError("connection refused"))


class FetcherFactory:
    """Builds FakeFetchers and remembers every instance created."""

    def __init__(self, outcomes: list[bytes | Exception] | None = None) -> None:
        self.created: list[FakeFetcher] = []
        self.outcomes = outcomes or []

    def __call__(self) -> FakeFetcher:
        fetcher = FakeFetcher()
        fetcher.outcomes = list(self.outcomes)
        self.created.append(fetcher)
        return fetcher

    @property
    def last(self) -> FakeFetcher:
        return self.created[-1]

    @property
    def total_calls(self) -> int:
        return sum(len(f.calls) for f in self.created)


class FakeScript:
    def __init__(self, results: dict[str, str], default: str) -> None:
        self.results = results
        self.default = default
        self.evaluated: list[str] = []

    def evaluate(self, url: str) -> str:
        self.evaluated.append(url)
        result = self.results.get(url, self.default)
        if result == "raise":
            raise ScriptError("ReferenceError: foo is not defined")
        return result


class FakeEngine:
    """Compiles any source except text containing 'syntax error'."""

    def __init__(self, default: str = DEFAULT_RESULT, results: dict[str, str] | None = None) -> None:
        self.default = default
        self.results = results or {}
        self.compiled: list[str] = []

    def compile(self, source: str) -> FakeScript:
        self.compiled.append(source)
        if "syntax error" in source:
            raise ScriptError("SyntaxError: unexpected token")
        return FakeScript(self.results, self.default)


class FakeWatcher:
    def __init__(self, callback: Callable[[str], None]) -> None:
        self.callback = callback
        self.watched: list[str] = []
        self.closed = False

    def watch(self, path: str) -> None:
        self.watched.append(path)

    def close(self) -> None:
        self.closed = True


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def notify(self, event: str, message: str) -> None:
        self.events.append((event, message))


class Replies:
    """Collects deferred replies in delivery order."""

    def __init__(self) -> None:
        self.received: list[tuple[str, object]] = []

    def handle(self, tag: str) -> Callable[[object], None]:
        return lambda answer: self.received.append((tag, answer))


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ResolverHarness:
    """A PacResolver wired to fakes, with handles to all of them."""

    def __init__(
        self,
        config: ResolutionConfig | None = None,
        engine: FakeEngine | None = None,
        outcomes: list[bytes | Exception] | None = None,
    ) -> None:
        self.config = config or ResolutionConfig(mode=ProxyMode.PAC, script_url=PAC_URL)
        self.clock = FakeClock()
        self.engine = engine or FakeEngine()
        self.downloaders = FetcherFactory(outcomes)
        self.discoveries = FetcherFactory(outcomes)
        self.watchers: list[FakeWatcher] = []
        self.notifier = RecordingNotifier()
        self.replies = Replies()
        self.config_loads = 0
        self.resolver = PacResolver(
            engine=self.engine,
            config_loader=self._load_config,
            notifier=self.notifier,
            downloader_factory=self.downloaders,
            discovery_factory=self.discoveries,
            watcher_factory=self._make_watcher,
            suspend_seconds=300,
            blacklist_ttl_seconds=1800,
            clock=self.clock,
        )

    def _load_config(self) -> ResolutionConfig:
        self.config_loads += 1
        return self.config

    def _make_watcher(self, callback: Callable[[str], None]) -> FakeWatcher:
        watcher = FakeWatcher(callback)
        self.watchers.append(watcher)
        return watcher

    @property
    def fetch_calls(self) -> int:
        return self.downloaders.total_calls + self.discoveries.total_calls

    def resolve(self, url: str, tag: str | None = None, want_all: bool = True):
        return self.resolver.resolve(url, self.replies.handle(tag or url), want_all=want_all)


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def blacklist(clock: FakeClock) -> BlacklistCache:
    return BlacklistCache(ttl_seconds=1800, clock=clock)


@pytest.fixture
def harness() -> ResolverHarness:
    return ResolverHarness()


# ---------------------------------------------------------------------------
# Hypothesis strategies (reusable across property tests)
# ---------------------------------------------------------------------------

# A bare host named like a scheme would read as "scheme:port"
hosts = st.from_regex(r"[a-z]{1,8}(\.[a-z]{2,6}){0,2}", fullmatch=True).filter(
    lambda h: h not in KNOWN_SCHEMES
)
ports = st.integers(min_value=1, max_value=65535)
ipv4 = st.tuples(*(st.integers(min_value=0, max_value=255) for _ in range(4))).map(
    lambda t: ".".join(str(o) for o in t)
)
addresses = st.tuples(st.one_of(hosts, ipv4), ports).map(lambda hp: f"{hp[0]}:{hp[1]}")
target_urls = st.from_regex(r"https?://[a-z]{3,10}\.[a-z]{2,4}/[a-z0-9]{0,10}", fullmatch=True)
