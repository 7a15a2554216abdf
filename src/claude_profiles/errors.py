"""Error taxonomy for profile operations.

Every failure the engine can surface maps to one of these types so
callers can print different remediation for each kind.
"""

from __future__ import annotations


class ProfileError(Exception):
    """Base class for all claude-profiles errors."""


class InvalidProfileName(ProfileError):
    """Profile name does not match ``^[a-z0-9-]+$``."""

    def __init__(self, name: str):
        super().__init__(
            f"Invalid profile name: {name!r}. "
            "Only lowercase letters, numbers, and hyphens are allowed."
        )
        self.name = name


class NoContent(ProfileError):
    """No watched source existed, so there is nothing to archive."""


class VerificationFailed(ProfileError):
    """A verification gate found missing essential entries."""

    def __init__(self, issues: list[str], message: str = "Profile verification failed"):
        super().__init__(f"{message}: {'; '.join(issues)}" if issues else message)
        self.message = message
        self.issues = list(issues)


class ProfileNotFound(ProfileError):
    """The named profile does not exist in the remote slot."""

    def __init__(self, name: str, available: list[str] | None = None):
        super().__init__(f"Profile '{name}' not found")
        self.name = name
        self.available = list(available or [])


class TransportError(ProfileError):
    """The remote store could not be reached or rejected the request."""


class PermissionDenied(ProfileError):
    """The remote store refused the request for auth or scope reasons."""


class ExtractionFailed(ProfileError):
    """The archive blob is not a valid, complete zip archive."""


class ProfileTooLarge(ProfileError):
    """The encoded archive exceeds the remote API ceiling."""

    def __init__(self, encoded_size: int, limit: int):
        super().__init__(
            f"Profile is too large to upload: {encoded_size} bytes encoded "
            f"(limit {limit} bytes)"
        )
        self.encoded_size = encoded_size
        self.limit = limit
