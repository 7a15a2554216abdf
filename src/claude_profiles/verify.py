"""Verification gate for profile contents.

Certifies that a tree (a freshly extracted archive, or the live home
directory) holds the entries needed to be a restorable profile. The gate
only reads; it never changes the tree it inspects.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from .credentials import has_tokens, uses_keychain
from .models import VerificationCheck, VerificationResult, WatchedSource
from .paths import (
    CLAUDE_CONFIG_BACKUP_ENTRY,
    CLAUDE_CONFIG_ENTRY,
    CLAUDE_DIR_ENTRY,
    CREDENTIALS_FILE_ENTRY,
    KEYCHAIN_CREDENTIALS_ENTRY,
    resolve_sources,
)

logger = logging.getLogger("claude_profiles.verify")


def essential_checks(platform: Optional[str] = None) -> list[VerificationCheck]:
    """Build the check list for a platform.

    On keychain platforms the keychain entry is essential and the plain
    credentials file is optional. Everywhere else it is the reverse.

    Args:
        platform: ``sys.platform`` value. Defaults to the current one.

    Returns:
        list[VerificationCheck]: Checks in reporting order.
    """
    keychain = uses_keychain(platform)
    return [
        VerificationCheck(
            entry=CREDENTIALS_FILE_ENTRY,
            description="Claude credentials (file)",
            essential=not keychain,
        ),
        VerificationCheck(
            entry=KEYCHAIN_CREDENTIALS_ENTRY,
            description="Claude credentials (macOS)",
            essential=keychain,
        ),
        VerificationCheck(
            entry=CLAUDE_CONFIG_ENTRY,
            description="Claude configuration",
            essential=True,
        ),
        VerificationCheck(
            entry=CLAUDE_CONFIG_BACKUP_ENTRY,
            description="Configuration backup",
        ),
        VerificationCheck(
            entry=CLAUDE_DIR_ENTRY,
            description="Claude directory",
            is_directory=True,
        ),
    ]


def _count_files(path: Path) -> int:
    try:
        return sum(1 for p in path.rglob("*") if p.is_file())
    except OSError:
        return 0


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


def verify_tree(
    root: Path, checks: Optional[list[VerificationCheck]] = None
) -> VerificationResult:
    """Check an extracted profile tree for its essential entries.

    Args:
        root: Directory the archive was extracted into.
        checks: Checks to run. Defaults to ``essential_checks()``.

    Returns:
        VerificationResult: ``valid`` is False if any essential entry
        is missing or has the wrong type.
    """
    result = VerificationResult()
    for check in checks if checks is not None else essential_checks():
        _apply_check(result, check, Path(root) / check.entry)
    return result


def _apply_check(result: VerificationResult, check: VerificationCheck, path: Path) -> None:
    if check.is_directory:
        if path.is_dir():
            result.found.append(check.entry)
            result.file_counts[check.entry] = _count_files(path)
        elif check.essential:
            result.valid = False
            result.issues.append(f"Missing: {check.description} ({check.entry})")
        return

    if path.is_file():
        result.found.append(check.entry)
        result.total_size += path.stat().st_size
        if check.entry in (CREDENTIALS_FILE_ENTRY, KEYCHAIN_CREDENTIALS_ENTRY):
            _check_credentials(result, _load_json(path), check.description)
    elif check.essential:
        result.valid = False
        result.issues.append(f"Missing: {check.description} ({check.entry})")


def _check_credentials(result: VerificationResult, data: Any, description: str) -> None:
    """Flag credentials that exist but look unusable. Never blocking."""
    if data is None:
        result.issues.append(f"{description} could not be parsed")
    elif not has_tokens(data):
        result.issues.append(f"{description} may be incomplete")


def verify_local(
    sources: list[WatchedSource],
    home: Optional[Path | str] = None,
    keychain_credentials: Optional[dict] = None,
    platform: Optional[str] = None,
) -> VerificationResult:
    """Check live local state before storing or watching.

    Paths are checked where they live instead of inside an archive. On
    keychain platforms, credentials found in the keychain satisfy the
    credential check.

    Args:
        sources: Watched sources (used to locate each entry).
        home: Home directory the logical paths resolve against.
        keychain_credentials: What the keychain returned, if anything.
        platform: ``sys.platform`` value. Defaults to the current one.

    Returns:
        VerificationResult: Same semantics as ``verify_tree``.
    """
    located = {src.entry_name: path for src, path in resolve_sources(sources, home)}
    result = VerificationResult()

    for check in essential_checks(platform):
        if check.entry == KEYCHAIN_CREDENTIALS_ENTRY:
            if keychain_credentials:
                result.found.append(check.entry)
                _check_credentials(result, keychain_credentials, check.description)
            elif check.essential:
                result.valid = False
                result.issues.append(f"Missing: {check.description} ({check.entry})")
            continue

        head, _, rest = check.entry.partition("/")
        base = located.get(head)
        if base is None:
            if check.essential:
                result.valid = False
                result.issues.append(f"Missing: {check.description} ({check.entry})")
            continue
        _apply_check(result, check, base / rest if rest else base)

    logger.debug("Local verification: valid=%s issues=%s", result.valid, result.issues)
    return result
