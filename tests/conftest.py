"""Shared test fixtures for claude-profiles."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import pytest

from claude_profiles.config import ProfilesConfig, StoreBackend
from claude_profiles.sink import LogSink
from claude_profiles.stores import LocalStore

CREDENTIALS = {
    "claudeAiOauth": {
        "accessToken": "sk-ant-oat01-test",
        "refreshToken": "sk-ant-ort01-test",
        "expiresAt": 1767225600000,
        "scopes": ["user:inference"],
        "subscriptionType": "max",
    }
}


@pytest.fixture
def fake_home(tmp_path: Path) -> Path:
    """Provide a home directory with a complete Claude setup."""
    home = tmp_path / "home"
    claude = home / ".claude"
    (claude / "commands").mkdir(parents=True)
    (claude / "projects" / "demo").mkdir(parents=True)

    (claude / ".credentials.json").write_text(json.dumps(CREDENTIALS))
    (claude / "settings.json").write_text('{"theme": "dark"}')
    (claude / "CLAUDE.md").write_text("# Global instructions\n")
    (claude / "commands" / "review.md").write_text("Review the diff.\n")
    (claude / "projects" / "demo" / "session.jsonl").write_text('{"role": "user"}\n')

    (home / ".claude.json").write_text('{"numStartups": 3, "userID": "abc"}')
    (home / ".claude.json.backup").write_text('{"numStartups": 2, "userID": "abc"}')
    return home


@pytest.fixture
def empty_home(tmp_path: Path) -> Path:
    """Provide a home directory with no Claude files at all."""
    home = tmp_path / "empty-home"
    home.mkdir()
    return home


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def local_store(store_root: Path) -> LocalStore:
    """Provide a directory-backed remote store."""
    return LocalStore(store_root)


@pytest.fixture
def profiles_config(fake_home: Path, store_root: Path) -> ProfilesConfig:
    """Provide a config pointing at the fake home and the local store."""
    return ProfilesConfig(
        backend=StoreBackend.LOCAL,
        local_path=store_root,
        home=fake_home,
        settle_seconds=0.05,
        min_save_interval=0.0,
    )


class RecordingSink(LogSink):
    """Sink that keeps every event in memory for assertions."""

    def __init__(self, verbose: bool = True, quiet: bool = False):
        super().__init__("claude_profiles.recording", verbose=verbose, quiet=quiet)
        self.events: list[tuple[int, str]] = []

    def emit(self, level: int, message: str, *args: Any, detail: bool = False) -> None:
        if self.enabled(level, detail):
            self.events.append((level, message % args if args else message))

    def messages(self, level: Optional[int] = None) -> list[str]:
        return [msg for lvl, msg in self.events if level is None or lvl == level]
