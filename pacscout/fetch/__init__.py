"""Script fetchers — direct download, WPAD discovery, and file watching."""

from pacscout.fetch.base import Fetcher
from pacscout.fetch.discovery import Discovery, static_hint, wpad_candidates
from pacscout.fetch.downloader import Downloader
from pacscout.fetch.watcher import FileWatcher

__all__ = [
    "Discovery",
    "Downloader",
    "Fetcher",
    "FileWatcher",
    "static_hint",
    "wpad_candidates",
]
