"""Interface to the PAC script execution engine.

Executing JavaScript is not part of this service: an engine is plugged in
through configuration (``PACSCOUT_SCRIPT_ENGINE=package.module:factory``).
The factory must return an object with ``compile(source) -> PacScript``;
the compiled script answers ``evaluate(url) -> str`` with the raw directive
string. Both raise ``ScriptError`` on failure.
"""

from __future__ import annotations

import codecs
import importlib
import logging
from typing import Protocol, runtime_checkable

from pacscout.middleware.error_handler import ScriptError

logger = logging.getLogger(__name__)


@runtime_checkable
class PacScript(Protocol):
    """A loaded proxy configuration script."""

    def evaluate(self, url: str) -> str: ...


@runtime_checkable
class ScriptEngine(Protocol):
    """Compiles script source into a PacScript."""

    def compile(self, source: str) -> PacScript: ...


class UnconfiguredEngine:
    """Engine used when none is configured; every script is rejected."""

    def compile(self, source: str) -> PacScript:
        raise ScriptError("No PAC script engine is configured")


def decode_script(data: bytes, charset: str | None = None) -> str:
    """Decode downloaded script bytes to text.

    Tries the declared charset first, then UTF-8 (dropping a BOM), and
    finally Latin-1, which accepts any byte sequence.
    """
    if charset:
        try:
            return data.decode(charset)
        except (LookupError, UnicodeDecodeError):
            logger.debug("Script is not valid %s, falling back to UTF-8", charset)

    if data.startswith(codecs.BOM_UTF8):
        data = data[len(codecs.BOM_UTF8):]
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def load_script_engine(target: str) -> ScriptEngine:
    """Instantiate the engine named by a ``module:attribute`` path.

    An empty target yields ``UnconfiguredEngine``. The attribute may be a class
    or any zero-argument callable returning an engine.

    Raises:
        ValueError: If the path is malformed, cannot be imported, or does not
            produce an object with a ``compile`` method.
    """
    if not target:
        logger.warning("No PAC script engine configured — all lookups will go DIRECT")
        return UnconfiguredEngine()

    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Script engine must be given as 'module:attribute', got {target!r}")

    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attribute)
    except (ImportError, AttributeError) as exc:
        raise ValueError(f"Cannot load script engine {target!r}: {exc}") from exc

    engine = factory()
    if not isinstance(engine, ScriptEngine):
        raise ValueError(f"Script engine {target!r} has no compile() method")

    logger.info("Loaded PAC script engine %s", target)
    return engine
