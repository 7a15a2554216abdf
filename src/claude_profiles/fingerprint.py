"""Content fingerprint over the watched sources.

Used only to decide whether a save is needed. Never persisted.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Optional

from .models import WatchedSource
from .paths import resolve_sources, walk_source


def canonical_json(data: Any) -> bytes:
    """Serialize a credential blob the same way every time."""
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _read_bytes(path: Path) -> Optional[bytes]:
    try:
        return path.read_bytes()
    except OSError:
        return None


def _fold(h, label: str, content: bytes) -> None:
    h.update(f"{label}\0{len(content)}\0".encode("utf-8"))
    h.update(content)


def compute_fingerprint(
    sources: list[WatchedSource],
    home: Optional[Path | str] = None,
    credentials: Optional[dict] = None,
    skip_projects: bool = False,
) -> str:
    """Hash the observable backup content.

    Every regular file is folded in as its archive entry name, its byte
    length, then its bytes, so moving content between files or between
    sources changes the digest. Directories also contribute their sorted
    relative path list. Missing sources and files that vanish mid-scan
    contribute nothing. The credential blob, when present, is folded in
    last.

    Args:
        sources: Watched sources to hash.
        home: Home directory the logical paths resolve against.
        credentials: Virtual credential source content, if any.
        skip_projects: Apply the same projects/ exclusion as the archive.

    Returns:
        str: Hex SHA-256 digest.
    """
    h = hashlib.sha256()

    for source, path in resolve_sources(sources, home):
        if path.is_dir():
            entries = walk_source(path, source, skip_projects)
            _fold(h, source.entry_name + "/", "\n".join(entries).encode("utf-8"))
            for rel in entries:
                file_path = path / rel
                if not file_path.is_file():
                    continue
                content = _read_bytes(file_path)
                if content is not None:
                    _fold(h, f"{source.entry_name}/{rel}", content)
        elif path.is_file():
            content = _read_bytes(path)
            if content is not None:
                _fold(h, source.entry_name, content)

    if credentials:
        _fold(h, "credentials", canonical_json(credentials))

    return h.hexdigest()
