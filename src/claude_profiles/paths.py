"""Path resolution for watched sources.

Logical paths are home-relative (``~/.claude``). The home directory is
injectable so tests and alternate setups never touch the real one.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from . import PROFILES_HOME
from .models import SourceKind, WatchedSource

# Archive entry names are part of the stored format. Do not rename.
CLAUDE_DIR_ENTRY = ".claude"
CLAUDE_CONFIG_ENTRY = ".claude.json"
CLAUDE_CONFIG_BACKUP_ENTRY = ".claude.json.backup"
KEYCHAIN_CREDENTIALS_ENTRY = ".macos.credentials.json"
CREDENTIALS_FILE_ENTRY = ".claude/.credentials.json"


def default_sources() -> list[WatchedSource]:
    """Return the fixed set of sources every profile captures."""
    return [
        WatchedSource(
            logical_path="~/.claude",
            entry_name=CLAUDE_DIR_ENTRY,
            kind=SourceKind.DIRECTORY,
        ),
        WatchedSource(
            logical_path="~/.claude.json",
            entry_name=CLAUDE_CONFIG_ENTRY,
            kind=SourceKind.FILE,
        ),
        WatchedSource(
            logical_path="~/.claude.json.backup",
            entry_name=CLAUDE_CONFIG_BACKUP_ENTRY,
            kind=SourceKind.FILE,
        ),
    ]


def home_dir(home: Optional[Path | str] = None) -> Path:
    """Resolve the home directory logical paths are relative to."""
    return Path(home or PROFILES_HOME).expanduser()


def expand_home(path: str, home: Optional[Path | str] = None) -> Path:
    """Expand a leading ``~`` against the configured home.

    Args:
        path: Logical path such as ``~/.claude.json``.
        home: Home override. Defaults to CLAUDE_PROFILES_HOME or ``~``.

    Returns:
        Path: Absolute file-system path.
    """
    base = home_dir(home)
    if path == "~":
        return base
    if path.startswith("~/"):
        return base / path[2:]
    return Path(path).expanduser()


def resolve_sources(
    sources: list[WatchedSource], home: Optional[Path | str] = None
) -> list[tuple[WatchedSource, Path]]:
    """Pair each source with its absolute path."""
    return [(src, expand_home(src.logical_path, home)) for src in sources]


def include_entry(
    relative: str, source: WatchedSource, skip_projects: bool = False
) -> bool:
    """Decide whether a path inside a directory source is captured.

    Nested copies of the source directory itself (``.claude/.claude/...``)
    are dropped, they only ever appear through recursive mistakes and
    blow up the archive. With ``skip_projects`` the top-level
    ``projects/`` folder is dropped too.

    Args:
        relative: POSIX path relative to the source root.
        source: The directory source being walked.
        skip_projects: Exclude the ``projects/`` folder.

    Returns:
        bool: True if the path belongs in the snapshot.
    """
    parts = relative.split("/")
    root_name = Path(source.entry_name).name
    if root_name in parts:
        return False
    if skip_projects and parts[0] == "projects":
        return False
    return True


def walk_source(
    root: Path, source: WatchedSource, skip_projects: bool = False
) -> list[str]:
    """List every path under a directory source, sorted and filtered.

    Args:
        root: Absolute directory path.
        source: The source the directory belongs to.
        skip_projects: Exclude the ``projects/`` folder.

    Returns:
        list[str]: Relative POSIX paths (files and directories).
    """
    try:
        found = [p.relative_to(root).as_posix() for p in root.rglob("*")]
    except OSError:
        return []
    return sorted(
        rel for rel in found if include_entry(rel, source, skip_projects)
    )
