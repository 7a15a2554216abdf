"""Tests for source path resolution and the entry filter."""

from __future__ import annotations

from pathlib import Path

from claude_profiles.models import SourceKind
from claude_profiles.paths import (
    default_sources,
    expand_home,
    include_entry,
    resolve_sources,
    walk_source,
)


def _claude_source():
    return default_sources()[0]


class TestExpandHome:
    """Tests for home expansion."""

    def test_tilde_slash_uses_override(self, tmp_path: Path) -> None:
        assert expand_home("~/.claude.json", tmp_path) == tmp_path / ".claude.json"

    def test_bare_tilde(self, tmp_path: Path) -> None:
        assert expand_home("~", tmp_path) == tmp_path

    def test_absolute_path_untouched(self, tmp_path: Path) -> None:
        target = tmp_path / "elsewhere"
        assert expand_home(str(target), tmp_path / "home") == target


class TestDefaultSources:
    """The default source set is part of the stored format."""

    def test_entries_and_kinds(self) -> None:
        sources = default_sources()
        assert [(s.entry_name, s.kind) for s in sources] == [
            (".claude", SourceKind.DIRECTORY),
            (".claude.json", SourceKind.FILE),
            (".claude.json.backup", SourceKind.FILE),
        ]

    def test_resolve_pairs_each_source(self, fake_home: Path) -> None:
        resolved = resolve_sources(default_sources(), fake_home)
        assert [path for _, path in resolved] == [
            fake_home / ".claude",
            fake_home / ".claude.json",
            fake_home / ".claude.json.backup",
        ]


class TestEntryFilter:
    """Tests for include_entry and walk_source."""

    def test_regular_entries_included(self) -> None:
        assert include_entry("settings.json", _claude_source())
        assert include_entry("commands/review.md", _claude_source())

    def test_nested_claude_dir_excluded(self) -> None:
        assert not include_entry(".claude", _claude_source())
        assert not include_entry("projects/x/.claude/settings.json", _claude_source())

    def test_projects_excluded_only_when_asked(self) -> None:
        assert include_entry("projects/demo/session.jsonl", _claude_source())
        assert not include_entry(
            "projects/demo/session.jsonl", _claude_source(), skip_projects=True
        )

    def test_walk_is_sorted_and_filtered(self, fake_home: Path) -> None:
        nested = fake_home / ".claude" / ".claude"
        nested.mkdir()
        (nested / "loop.json").write_text("{}")

        entries = walk_source(fake_home / ".claude", _claude_source())

        assert entries == sorted(entries)
        assert "settings.json" in entries
        assert not any(e.startswith(".claude") for e in entries)

    def test_walk_skip_projects(self, fake_home: Path) -> None:
        entries = walk_source(fake_home / ".claude", _claude_source(), skip_projects=True)
        assert not any(e.startswith("projects") for e in entries)
        assert "commands/review.md" in entries
