"""
Credential sources -- keychain access and credential schema normalization.

On macOS Claude keeps its OAuth credentials in the login keychain
instead of ``~/.claude/.credentials.json``. The keychain is treated as
one more source that yields a JSON blob.

Over time the blob has been written in several shapes. Each known shape
is a variant below, and ``normalize_credentials`` maps all of them to the
current wrapped form::

    {"claudeAiOauth": {"accessToken": ..., "refreshToken": ..., ...}}
"""

from __future__ import annotations

import getpass
import json
import logging
import shutil
import subprocess
import sys
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger("claude_profiles.credentials")

KEYCHAIN_SERVICE = "Claude Code-credentials"
DEFAULT_SCOPES = ["user:inference"]
DEFAULT_SUBSCRIPTION = "max"


class WrappedOAuthCredentials(BaseModel):
    """Current shape: OAuth fields nested under ``claudeAiOauth``."""

    variant: Literal["wrapped"] = "wrapped"
    data: dict[str, Any]


class LegacySnakeCaseCredentials(BaseModel):
    """Early shape with snake_case token fields at the top level."""

    model_config = ConfigDict(extra="ignore")

    variant: Literal["legacy"] = "legacy"
    access_token: str
    refresh_token: Optional[str] = None
    expiry_date: Optional[int] = None
    expiresAt: Optional[int] = None
    scopes: Optional[list[str]] = None
    subscriptionType: Optional[str] = None


class BareOAuthCredentials(BaseModel):
    """camelCase OAuth fields without the ``claudeAiOauth`` wrapper."""

    variant: Literal["bare"] = "bare"
    data: dict[str, Any]


class UnknownCredentials(BaseModel):
    """Anything else. Passed through untouched."""

    variant: Literal["unknown"] = "unknown"
    data: dict[str, Any]


CredentialVariant = Annotated[
    Union[
        WrappedOAuthCredentials,
        LegacySnakeCaseCredentials,
        BareOAuthCredentials,
        UnknownCredentials,
    ],
    Field(discriminator="variant"),
]


def classify_credentials(raw: dict[str, Any]) -> CredentialVariant:
    """Tag a raw credential blob with its schema variant."""
    if "claudeAiOauth" in raw:
        return WrappedOAuthCredentials(data=raw)
    if "access_token" in raw:
        return LegacySnakeCaseCredentials(**raw)
    if "accessToken" in raw:
        return BareOAuthCredentials(data=raw)
    return UnknownCredentials(data=raw)


def normalize_credentials(raw: dict[str, Any]) -> dict[str, Any]:
    """Map any known credential shape to the wrapped form.

    Args:
        raw: Parsed credential JSON.

    Returns:
        dict: Wrapped credentials. Unknown shapes come back as given.
    """
    creds = classify_credentials(raw)
    if isinstance(creds, WrappedOAuthCredentials):
        return creds.data
    if isinstance(creds, LegacySnakeCaseCredentials):
        return {
            "claudeAiOauth": {
                "accessToken": creds.access_token,
                "refreshToken": creds.refresh_token,
                "expiresAt": creds.expiry_date or creds.expiresAt,
                "scopes": creds.scopes or list(DEFAULT_SCOPES),
                "subscriptionType": creds.subscriptionType or DEFAULT_SUBSCRIPTION,
            }
        }
    if isinstance(creds, BareOAuthCredentials):
        return {"claudeAiOauth": creds.data}
    return creds.data


def has_tokens(raw: Any) -> bool:
    """True when a credential blob carries an access or refresh token."""
    if not isinstance(raw, dict):
        return False
    oauth = normalize_credentials(raw).get("claudeAiOauth")
    if not isinstance(oauth, dict):
        return False
    return bool(oauth.get("accessToken") or oauth.get("refreshToken"))


class CredentialSource:
    """A non-filesystem source of credentials."""

    @property
    def available(self) -> bool:
        return False

    def read(self) -> Optional[dict[str, Any]]:
        return None

    def write(self, credentials: dict[str, Any]) -> bool:
        return False


class NullCredentialSource(CredentialSource):
    """Platforms where credentials live in a plain file."""


class KeychainCredentialSource(CredentialSource):
    """macOS login keychain, accessed through the ``security`` tool."""

    def __init__(self, service: str = KEYCHAIN_SERVICE, account: Optional[str] = None):
        self.service = service
        self.account = account or getpass.getuser()

    @property
    def available(self) -> bool:
        return shutil.which("security") is not None

    def read(self) -> Optional[dict[str, Any]]:
        """Return the stored credential JSON exactly as Claude wrote it."""
        try:
            result = subprocess.run(
                ["security", "find-generic-password",
                 "-a", self.account, "-s", self.service, "-w"],
                capture_output=True, text=True, check=False,
            )
        except OSError as exc:
            logger.debug("security command unavailable: %s", exc)
            return None

        if result.returncode != 0:
            return None

        try:
            data = json.loads(result.stdout.strip())
        except json.JSONDecodeError:
            logger.warning("Keychain credentials are not valid JSON")
            return None
        return data if isinstance(data, dict) else None

    def write(self, credentials: dict[str, Any]) -> bool:
        """Store credentials, normalized to the wrapped form.

        Returns:
            True if the keychain accepted the item.
        """
        payload = json.dumps(normalize_credentials(credentials))
        try:
            result = subprocess.run(
                ["security", "add-generic-password", "-U",
                 "-a", self.account, "-s", self.service, "-w", payload],
                capture_output=True, text=True, check=False,
            )
        except OSError as exc:
            logger.debug("security command unavailable: %s", exc)
            return False

        if result.returncode != 0:
            logger.debug("security add-generic-password failed: %s", result.stderr)
            return False
        return True


def uses_keychain(platform: Optional[str] = None) -> bool:
    """True on platforms where credentials live in the OS keychain."""
    return (platform or sys.platform) == "darwin"


def credential_source_for(platform: Optional[str] = None) -> CredentialSource:
    """Pick the credential source for a platform."""
    if uses_keychain(platform):
        return KeychainCredentialSource()
    return NullCredentialSource()
