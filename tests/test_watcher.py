"""Tests for file-change notification and the credential poller."""

from __future__ import annotations

import time
from pathlib import Path

from watchdog.events import FileClosedEvent, FileModifiedEvent, FileMovedEvent

from claude_profiles.paths import default_sources
from claude_profiles.watcher import CredentialPoller, FileChangeNotifier, _SourceHandler


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


class TestSourceHandler:
    """Event filtering."""

    def test_forwards_changes(self, tmp_path: Path) -> None:
        seen = []
        handler = _SourceHandler(lambda kind, path: seen.append((kind, path)))
        handler.dispatch(FileModifiedEvent(str(tmp_path / "a.json")))
        assert seen == [("modified", str(tmp_path / "a.json"))]

    def test_ignores_close_events(self, tmp_path: Path) -> None:
        seen = []
        handler = _SourceHandler(lambda kind, path: seen.append(kind))
        handler.dispatch(FileClosedEvent(str(tmp_path / "a.json")))
        assert seen == []

    def test_only_filter(self, tmp_path: Path) -> None:
        seen = []
        target = tmp_path / ".claude.json"
        handler = _SourceHandler(lambda kind, path: seen.append(path), only={target})

        handler.dispatch(FileModifiedEvent(str(tmp_path / "unrelated.txt")))
        handler.dispatch(FileModifiedEvent(str(target)))
        assert seen == [str(target)]

    def test_rename_onto_watched_file(self, tmp_path: Path) -> None:
        seen = []
        target = tmp_path / ".claude.json"
        handler = _SourceHandler(lambda kind, path: seen.append((kind, path)), only={target})

        handler.dispatch(FileMovedEvent(str(tmp_path / ".claude.json.tmp"), str(target)))
        assert seen == [("moved", str(target))]


class TestFileChangeNotifier:
    """Tests against a real watchdog observer."""

    def test_counts_existing_sources(self, fake_home: Path) -> None:
        notifier = FileChangeNotifier(default_sources(), lambda *a: None, fake_home)
        try:
            assert notifier.start() == 3
        finally:
            notifier.stop()

    def test_nothing_to_watch(self, empty_home: Path) -> None:
        notifier = FileChangeNotifier(default_sources(), lambda *a: None, empty_home)
        assert notifier.start() == 0
        notifier.stop()

    def test_reports_nested_change(self, fake_home: Path) -> None:
        seen = []
        notifier = FileChangeNotifier(
            default_sources(), lambda kind, path: seen.append(path), fake_home
        )
        notifier.start()
        try:
            (fake_home / ".claude" / "commands" / "review.md").write_text("changed")
            assert _wait_for(lambda: any("review.md" in p for p in seen))
        finally:
            notifier.stop()


class TestCredentialPoller:
    """Fingerprint polling."""

    def test_reports_only_on_change(self) -> None:
        values = iter(["a", "a", "b", "b"])
        seen = []
        poller = CredentialPoller(lambda: next(values), lambda kind, path: seen.append(path))
        poller._last = next(values)

        assert not poller.poll_once()
        assert poller.poll_once()
        assert not poller.poll_once()
        assert seen == ["macOS Keychain"]

    def test_errors_do_not_stop_polling(self) -> None:
        def broken():
            raise OSError("security tool crashed")

        poller = CredentialPoller(broken, lambda *a: None)
        assert not poller.poll_once()

    def test_thread_lifecycle(self) -> None:
        poller = CredentialPoller(lambda: "same", lambda *a: None, interval=0.01)
        poller.start()
        poller.stop()
        assert not poller._thread.is_alive()
