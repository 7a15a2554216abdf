"""
Transfer protocol -- moves archive blobs in and out of a remote slot.

The slot is text-oriented, so blobs travel as base64. Every profile is
one entry named ``<profile>.zip.base64``. Reads that come back truncated
are always re-fetched through the raw locator.

Nothing here retries. A failed round trip surfaces as an error and the
caller decides what to do.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from .errors import ProfileNotFound, TransportError
from .models import (
    GIST_SIZE_LIMIT_API,
    GIST_SIZE_LIMIT_WEB,
    GIST_SIZE_WARNING,
    Profile,
    SizeCheck,
    validate_profile_name,
)
from .stores import RemoteStore

logger = logging.getLogger("claude_profiles.transfer")

SLOT_DESCRIPTION = "claude-profiles-backup"
ENTRY_SUFFIX = ".zip.base64"


def entry_name(profile: str) -> str:
    """Remote entry name for a profile."""
    return f"{profile}{ENTRY_SUFFIX}"


def encoded_size(size: int) -> int:
    """Exact base64 length of ``size`` raw bytes."""
    return 4 * ((size + 2) // 3)


def check_size(blob_or_size: bytes | int) -> SizeCheck:
    """Classify an archive by its size after base64 encoding.

    Args:
        blob_or_size: The archive bytes, or their length.

    Returns:
        SizeCheck: Size category flags.
    """
    size = blob_or_size if isinstance(blob_or_size, int) else len(blob_or_size)
    encoded = encoded_size(size)
    return SizeCheck(
        size=size,
        encoded_size=encoded,
        within_limit=encoded <= GIST_SIZE_LIMIT_API,
        is_large=encoded > GIST_SIZE_WARNING,
        exceeds_web_interface_limit=encoded > GIST_SIZE_LIMIT_WEB,
    )


def format_bytes(size: int) -> str:
    """Human-readable byte count (``1.5 MB``)."""
    value = float(size)
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


class TransferProtocol:
    """Upload, download, and manage profile blobs in one remote slot.

    Args:
        store: Remote store holding the slot.
        description: Description identifying the slot.
    """

    def __init__(self, store: RemoteStore, description: str = SLOT_DESCRIPTION):
        self.store = store
        self.description = description
        self._slot_id: Optional[str] = None

    def slot_id(self, create: bool = True) -> Optional[str]:
        """Find the profile slot, creating it on first use.

        Args:
            create: Create the slot when it does not exist yet.

        Returns:
            The slot id, or None when missing and ``create`` is False.
        """
        if self._slot_id is None:
            found = self.store.find_by_description(self.description)
            if found is None and create:
                found = self.store.create(self.description)
            self._slot_id = found
        return self._slot_id

    def profiles(self) -> list[Profile]:
        """Every stored profile, sorted by name."""
        slot = self.slot_id(create=False)
        if slot is None:
            return []
        names = sorted(
            name[: -len(ENTRY_SUFFIX)]
            for name in self.store.list_entry_names(slot)
            if name.endswith(ENTRY_SUFFIX)
        )
        return [Profile(name=name, slot_id=slot) for name in names]

    def list(self) -> list[str]:
        """Names of every stored profile, sorted."""
        return [profile.name for profile in self.profiles()]

    def exists(self, profile: str) -> bool:
        validate_profile_name(profile)
        return profile in self.list()

    def upload(self, profile: str, blob: bytes) -> SizeCheck:
        """Store a blob under a profile name, replacing any previous one.

        Returns:
            SizeCheck: Size category of what was sent.
        """
        validate_profile_name(profile)
        content = base64.b64encode(blob).decode("ascii")
        slot = self.slot_id()
        self.store.write_entry(slot, entry_name(profile), content)
        logger.debug("Uploaded %s (%d bytes encoded)", profile, len(content))
        return check_size(blob)

    def download(self, profile: str) -> bytes:
        """Fetch and decode a profile's archive blob.

        Raises:
            ProfileNotFound: If no entry exists for the profile.
            TransportError: If the payload is empty or not base64.
        """
        validate_profile_name(profile)
        slot = self.slot_id(create=False)
        entry = self.store.read_entry(slot, entry_name(profile)) if slot else None
        if entry is None:
            raise ProfileNotFound(profile, self.list() if slot else [])

        if entry.truncated:
            if not entry.raw_url:
                raise TransportError(
                    f"Profile '{profile}' is truncated and has no raw locator"
                )
            logger.info(
                "Profile is large (%s), downloading from raw URL...",
                format_bytes(entry.size),
            )
            payload = self.store.fetch_raw(entry.raw_url).decode("ascii", "replace")
        else:
            payload = entry.content

        payload = "".join(payload.split())
        if not payload:
            raise TransportError("Downloaded profile data is empty")

        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TransportError(f"Failed to decode profile data: {exc}") from exc

    def delete(self, profile: str) -> None:
        """Remove a profile.

        Raises:
            ProfileNotFound: If the profile does not exist.
        """
        validate_profile_name(profile)
        slot = self.slot_id(create=False)
        available = self.list() if slot else []
        if profile not in available:
            raise ProfileNotFound(profile, available)
        self.store.delete_entry(slot, entry_name(profile))
        logger.debug("Deleted %s", profile)
