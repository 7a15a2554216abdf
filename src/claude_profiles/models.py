"""
Profile data models -- sources, remote entries, size and verification results.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidProfileName

PROFILE_NAME_PATTERN = re.compile(r"^[a-z0-9-]+$")

# Sizes are measured on the base64-encoded payload
GIST_SIZE_LIMIT_API = 40 * 1024 * 1024
GIST_SIZE_LIMIT_WEB = 20 * 1024 * 1024
GIST_SIZE_WARNING = 10 * 1024 * 1024


def validate_profile_name(name: str) -> str:
    """Reject names that would produce ambiguous remote entry names.

    Args:
        name: Candidate profile name.

    Returns:
        str: The same name, when valid.

    Raises:
        InvalidProfileName: If the name has characters outside [a-z0-9-].
    """
    if not isinstance(name, str) or not PROFILE_NAME_PATTERN.fullmatch(name):
        raise InvalidProfileName(str(name))
    return name


class SourceKind(str, Enum):
    """What a watched source is on disk."""

    FILE = "file"
    DIRECTORY = "directory"


class WatchedSource(BaseModel):
    """One logical backup unit.

    Attributes:
        logical_path: Configured path, usually home-relative (``~/.claude``).
        entry_name: Root name of the source inside the archive.
        kind: Whether the source is a single file or a directory tree.
    """

    model_config = ConfigDict(frozen=True)

    logical_path: str
    entry_name: str
    kind: SourceKind


class Profile(BaseModel):
    """A named remote snapshot."""

    name: str
    slot_id: str


class RemoteEntry(BaseModel):
    """One entry as read back from a remote slot.

    When ``truncated`` is set, ``content`` is incomplete and the full
    payload must be fetched from ``raw_url``.
    """

    name: str
    content: str = ""
    truncated: bool = False
    raw_url: Optional[str] = None
    size: int = 0


class SizeCheck(BaseModel):
    """Size category of an archive after base64 encoding."""

    size: int
    encoded_size: int
    within_limit: bool
    is_large: bool
    exceeds_web_interface_limit: bool


class VerificationCheck(BaseModel):
    """One entry the verification gate looks for."""

    entry: str
    description: str
    essential: bool = False
    is_directory: bool = False


class VerificationResult(BaseModel):
    """Outcome of a verification gate.

    Attributes:
        valid: True when every essential entry is present.
        issues: Human-readable problems, blocking or not.
        found: Entries that were present.
        file_counts: Directory entry -> number of files inside.
        total_size: Sum of the sizes of found file entries.
    """

    valid: bool = True
    issues: list[str] = Field(default_factory=list)
    found: list[str] = Field(default_factory=list)
    file_counts: dict[str, int] = Field(default_factory=dict)
    total_size: int = 0


class StoreResult(BaseModel):
    """What a store (or watch-mode save) did."""

    profile: str
    archive_size: int
    size_check: SizeCheck
    fingerprint: str


class RestoreResult(BaseModel):
    """What a restore put back."""

    profile: str
    restored: list[str] = Field(default_factory=list)
    credentials_restored: bool = False
    verification: VerificationResult
