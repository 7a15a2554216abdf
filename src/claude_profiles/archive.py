"""Profile archive codec.

Turns the watched sources into a single zip blob and back.

Layout inside the zip (entry names are a stored-format contract):
    .claude/                    # config directory, recursive
    .claude.json                # primary config file
    .claude.json.backup         # its backup copy
    .macos.credentials.json     # keychain credentials (macOS only)

Byte-for-byte output is not stable across runs (zip timestamps),
so never hash the blob to detect changes. Use the fingerprint.
"""

from __future__ import annotations

import json
import logging
import zipfile
import zlib
from io import BytesIO
from pathlib import Path
from typing import Optional

from .errors import ExtractionFailed, NoContent
from .models import WatchedSource
from .paths import KEYCHAIN_CREDENTIALS_ENTRY, resolve_sources, walk_source

logger = logging.getLogger("claude_profiles.archive")

COMPRESSION_LEVEL = 9


def build_archive(
    sources: list[WatchedSource],
    home: Optional[Path | str] = None,
    credentials: Optional[dict] = None,
    skip_projects: bool = False,
) -> bytes:
    """Archive every existing source into one compressed blob.

    Args:
        sources: Watched sources to capture.
        home: Home directory the logical paths resolve against.
        credentials: Keychain credential blob to add as a virtual entry.
        skip_projects: Leave the ``.claude/projects`` folder out.

    Returns:
        bytes: The zip archive.

    Raises:
        NoContent: If no source existed and there were no credentials.
    """
    buf = BytesIO()
    added = 0

    with zipfile.ZipFile(
        buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESSION_LEVEL
    ) as zf:
        for source, path in resolve_sources(sources, home):
            if path.is_dir():
                zf.writestr(f"{source.entry_name}/", b"")
                for rel in walk_source(path, source, skip_projects):
                    _add_path(zf, path / rel, f"{source.entry_name}/{rel}")
                logger.debug("Added directory: %s", source.logical_path)
                added += 1
            elif path.is_file():
                if _add_path(zf, path, source.entry_name):
                    logger.debug("Added file: %s", source.logical_path)
                    added += 1

        if credentials:
            zf.writestr(
                KEYCHAIN_CREDENTIALS_ENTRY,
                json.dumps(credentials, indent=2),
            )
            logger.debug("Added keychain credentials")
            added += 1

    if added == 0:
        raise NoContent("No configuration files found to back up")

    return buf.getvalue()


def _add_path(zf: zipfile.ZipFile, path: Path, arcname: str) -> bool:
    """Add one file or directory, skipping anything unreadable."""
    try:
        if path.is_dir():
            zf.writestr(f"{arcname}/", b"")
        elif path.is_file():
            zf.write(path, arcname)
        else:
            return False
    except (OSError, ValueError) as exc:
        logger.warning("Could not add %s: %s", path, exc)
        return False
    return True


def _open(blob: bytes) -> zipfile.ZipFile:
    try:
        return zipfile.ZipFile(BytesIO(blob))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, ValueError) as exc:
        raise ExtractionFailed(f"Not a valid profile archive: {exc}") from exc


def list_entries(blob: bytes) -> list[str]:
    """Return the entry names inside an archive blob."""
    with _open(blob) as zf:
        return zf.namelist()


def extract_archive(blob: bytes, dest: Path) -> list[str]:
    """Write every entry of an archive under ``dest``.

    Args:
        blob: Zip archive bytes.
        dest: Target directory. Created if missing.

    Returns:
        list[str]: Names of the extracted entries.

    Raises:
        ExtractionFailed: If the blob is corrupt, truncated, or tries
            to write outside ``dest``.
    """
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()

    with _open(blob) as zf:
        try:
            bad = zf.testzip()
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as exc:
            raise ExtractionFailed(f"Corrupt profile archive: {exc}") from exc
        if bad is not None:
            raise ExtractionFailed(f"Corrupt entry in profile archive: {bad}")

        names = zf.namelist()
        for name in names:
            target = (root / name).resolve()
            if target != root and root not in target.parents:
                raise ExtractionFailed(f"Unsafe entry path in archive: {name}")

        try:
            zf.extractall(root)
        except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as exc:
            raise ExtractionFailed(f"Failed to extract profile archive: {exc}") from exc

    logger.debug("Extracted %d entries to %s", len(names), dest)
    return names
