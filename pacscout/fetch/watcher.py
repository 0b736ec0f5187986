"""Change-watch on a local proxy configuration script.

A background asyncio task compares ``(mtime_ns, size, inode)`` snapshots of
the watched path. Editors often replace files instead of rewriting them, so
the snapshot includes the inode and a vanished-then-recreated file counts
as a change. The callback is expected to re-arm the watch with ``watch()``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable

logger = logging.getLogger(__name__)

_Snapshot = tuple[int, int, int] | None


def _snapshot(path: str) -> _Snapshot:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (st.st_mtime_ns, st.st_size, st.st_ino)


class FileWatcher:
    """Watches a single file and reports changes to ``callback(path)``.

    Args:
        callback: Invoked with the watched path after each detected change.
        interval_seconds: Delay between checks (default 2).
    """

    def __init__(
        self,
        callback: Callable[[str], None],
        interval_seconds: float = 2.0,
    ) -> None:
        self._callback = callback
        self._interval_seconds = interval_seconds
        self._path: str | None = None
        self._snapshot: _Snapshot = None
        self._task: asyncio.Task[None] | None = None

    @property
    def path(self) -> str | None:
        return self._path

    def watch(self, path: str) -> None:
        """Watch ``path`` instead of whatever was watched before.

        Must be called from the event loop; the polling task starts on the
        first call.
        """
        self._path = path
        self._snapshot = _snapshot(path)
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(
                self._watch_loop(), name="pac-file-watcher"
            )
        logger.debug("Watching proxy configuration script %s", path)

    def unwatch(self) -> None:
        self._path = None
        self._snapshot = None

    def check(self) -> bool:
        """Compare the file against the last snapshot; report a change."""
        if self._path is None:
            return False

        current = _snapshot(self._path)
        if current == self._snapshot:
            return False

        self._snapshot = current
        logger.info("Proxy configuration script changed: %s", self._path)
        self._callback(self._path)
        return True

    def close(self) -> None:
        """Stop watching and cancel the polling task."""
        self.unwatch()
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _watch_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                self.check()
            except Exception:
                logger.exception("File change callback failed for %s", self._path)
