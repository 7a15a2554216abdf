"""File-change notification for watch mode.

Directory sources are watched recursively. File sources are watched
through their parent directory and filtered down to the file itself,
since editors often replace files by rename. The keychain has no change
feed, so a poller compares fingerprints on an interval instead.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .models import WatchedSource
from .paths import resolve_sources

logger = logging.getLogger("claude_profiles.watcher")

ChangeCallback = Callable[[str, str], None]


class _SourceHandler(FileSystemEventHandler):
    """Forward events under a watched root, optionally limited to some files."""

    def __init__(self, callback: ChangeCallback, only: Optional[set[Path]] = None):
        self.callback = callback
        self.only = only

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed", "closed_no_write"):
            return
        paths = [Path(str(event.src_path))]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(Path(str(dest)))
        if self.only is not None and not any(p in self.only for p in paths):
            return
        self.callback(event.event_type, str(paths[-1]))


class FileChangeNotifier:
    """Watch every existing source and report ``(event_kind, path)``.

    Args:
        sources: Watched sources.
        callback: Called from the observer thread for each change.
        home: Home directory the logical paths resolve against.
    """

    def __init__(
        self,
        sources: list[WatchedSource],
        callback: ChangeCallback,
        home: Optional[Path | str] = None,
    ):
        self.sources = sources
        self.callback = callback
        self.home = home
        self.observer: Optional[Observer] = None
        self.watched: list[Path] = []

    def start(self) -> int:
        """Start watching.

        Returns:
            int: Number of source paths being watched.
        """
        self.observer = Observer()
        files_by_parent: dict[Path, set[Path]] = {}

        for source, path in resolve_sources(self.sources, self.home):
            if path.is_dir():
                self.observer.schedule(_SourceHandler(self.callback), str(path), recursive=True)
                self.watched.append(path)
                logger.debug("Watching: %s (directory)", source.logical_path)
            elif path.is_file():
                files_by_parent.setdefault(path.parent, set()).add(path)
                self.watched.append(path)
                logger.debug("Watching: %s (file)", source.logical_path)

        for parent, files in files_by_parent.items():
            self.observer.schedule(
                _SourceHandler(self.callback, only=files), str(parent), recursive=False
            )

        if self.watched:
            self.observer.start()
        return len(self.watched)

    def stop(self) -> None:
        """Unsubscribe and wait for the observer thread to exit."""
        if self.observer is None:
            return
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=5)
        self.observer = None


class CredentialPoller:
    """Poll a fingerprint and report when it changes.

    Args:
        fingerprint_fn: Returns the current fingerprint.
        callback: Called with ``("change", label)`` when it differs.
        interval: Seconds between polls.
        label: Path label passed to the callback.
    """

    def __init__(
        self,
        fingerprint_fn: Callable[[], str],
        callback: ChangeCallback,
        interval: float = 5.0,
        label: str = "macOS Keychain",
    ):
        self.fingerprint_fn = fingerprint_fn
        self.callback = callback
        self.interval = interval
        self.label = label
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last: Optional[str] = None

    def start(self) -> None:
        self._last = self.fingerprint_fn()
        self._thread = threading.Thread(
            target=self._loop, name="credential-poller", daemon=True
        )
        self._thread.start()

    def poll_once(self) -> bool:
        """Compare once. Returns True if a change was reported."""
        try:
            current = self.fingerprint_fn()
        except Exception as exc:
            logger.error("Error checking keychain: %s", exc)
            return False
        if current == self._last:
            return False
        self._last = current
        logger.debug("Keychain credentials changed, triggering save")
        self.callback("change", self.label)
        return True

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval):
            self.poll_once()
