"""
Remote object stores -- where profile archives live.

Each store is a set of named slots holding named text entries. The
transfer protocol only needs create/find/list/read/write/delete plus a
raw fetch for content too large to come back inline.

Gist: a secret GitHub gist, driven through the authenticated ``gh`` CLI.
Local: a plain directory. For offline use, NAS mounts, and tests.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from .errors import PermissionDenied, TransportError
from .models import RemoteEntry

logger = logging.getLogger("claude_profiles.stores")

GIST_README = """# Claude Profiles Backup

This gist stores Claude profile backups as zip files (base64 encoded).

Do not edit this gist manually.

## Profiles

Each .zip.base64 file contains a backup of:
- ~/.claude/ directory
- ~/.claude.json
- ~/.claude.json.backup
"""

_PERMISSION_MARKERS = (
    "HTTP 401",
    "HTTP 403",
    "Bad credentials",
    "not logged in",
    "scope",
    "permission",
)


class RemoteStore(ABC):
    """Abstract named-blob store."""

    @abstractmethod
    def create(self, description: str) -> str:
        """Create a slot and return its id."""

    @abstractmethod
    def find_by_description(self, description: str) -> Optional[str]:
        """Return the id of the slot with this description, if any."""

    @abstractmethod
    def list_entry_names(self, slot_id: str) -> list[str]:
        """Names of every entry in a slot."""

    @abstractmethod
    def read_entry(self, slot_id: str, name: str) -> Optional[RemoteEntry]:
        """Read one entry, or None if it does not exist."""

    @abstractmethod
    def fetch_raw(self, locator: str) -> bytes:
        """Fetch full entry content from a raw locator."""

    @abstractmethod
    def write_entry(self, slot_id: str, name: str, content: str) -> None:
        """Create or replace an entry."""

    @abstractmethod
    def delete_entry(self, slot_id: str, name: str) -> None:
        """Remove an entry."""

    @abstractmethod
    def available(self) -> bool:
        """Check if this store is currently usable."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name."""


def classify_gh_error(output: str) -> TransportError | PermissionDenied:
    """Turn ``gh`` failure output into the matching error type.

    Args:
        output: Combined stderr/stdout of the failed command.

    Returns:
        PermissionDenied for auth and scope failures, TransportError
        for everything else.
    """
    text = output.strip() or "gh command failed"
    lowered = text.lower()
    if any(marker.lower() in lowered for marker in _PERMISSION_MARKERS):
        return PermissionDenied(text)
    if "rate limit" in lowered:
        return TransportError(f"GitHub API rate limit exceeded: {text}")
    return TransportError(text)


class GistStore(RemoteStore):
    """Secret GitHub gist accessed through ``gh api``.

    Large files come back from the gist API with ``truncated`` set and a
    ``raw_url``; those are fetched over plain HTTPS.
    """

    def __init__(self, gh_bin: str = "gh", timeout: int = 120):
        self.gh_bin = gh_bin
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "gist"

    def available(self) -> bool:
        return shutil.which(self.gh_bin) is not None

    def _gh(self, args: list[str], payload: Optional[dict] = None) -> str:
        """Run a gh command and return its stdout.

        Raises:
            TransportError: If gh is missing, times out, or fails.
            PermissionDenied: If gh reports an auth or scope problem.
        """
        try:
            result = subprocess.run(
                [self.gh_bin, *args],
                input=json.dumps(payload) if payload is not None else None,
                capture_output=True, text=True, check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise TransportError("GitHub CLI (gh) is not installed") from exc
        except subprocess.TimeoutExpired as exc:
            raise TransportError(f"gh {' '.join(args[:2])} timed out") from exc

        if result.returncode != 0:
            logger.debug("gh %s failed: %s", " ".join(args), result.stderr)
            raise classify_gh_error(result.stderr or result.stdout)
        return result.stdout

    def _gist(self, slot_id: str) -> dict:
        out = self._gh(["api", f"/gists/{slot_id}"])
        try:
            return json.loads(out)
        except json.JSONDecodeError as exc:
            raise TransportError(f"Unexpected gist API response: {exc}") from exc

    def create(self, description: str) -> str:
        payload = {
            "description": description,
            "public": False,
            "files": {"README.md": {"content": GIST_README}},
        }
        out = self._gh(["api", "/gists", "--method", "POST", "--input", "-"], payload)
        try:
            gist_id = json.loads(out)["id"]
        except (json.JSONDecodeError, KeyError) as exc:
            raise TransportError(f"Could not read new gist id: {exc}") from exc
        logger.info("Created secret gist for profile storage: %s", gist_id)
        return gist_id

    def find_by_description(self, description: str) -> Optional[str]:
        query = f'.[] | select(.description == "{description}") | .id'
        out = self._gh(["api", "/gists", "--paginate", "--jq", query])
        ids = [line.strip() for line in out.splitlines() if line.strip()]
        return ids[0] if ids else None

    def list_entry_names(self, slot_id: str) -> list[str]:
        return sorted(self._gist(slot_id).get("files", {}))

    def read_entry(self, slot_id: str, name: str) -> Optional[RemoteEntry]:
        data = self._gist(slot_id).get("files", {}).get(name)
        if not data:
            return None
        return RemoteEntry(
            name=name,
            content=data.get("content") or "",
            truncated=bool(data.get("truncated")),
            raw_url=data.get("raw_url"),
            size=data.get("size") or 0,
        )

    def fetch_raw(self, locator: str) -> bytes:
        import requests

        try:
            resp = requests.get(locator, timeout=self.timeout)
        except requests.RequestException as exc:
            raise TransportError(f"Raw download failed: {exc}") from exc

        if resp.status_code in (401, 403):
            raise PermissionDenied(f"Raw download refused: HTTP {resp.status_code}")
        if resp.status_code >= 400:
            raise TransportError(f"Raw download failed: HTTP {resp.status_code}")
        return resp.content

    def write_entry(self, slot_id: str, name: str, content: str) -> None:
        payload = {"files": {name: {"content": content}}}
        self._gh(["api", f"/gists/{slot_id}", "--method", "PATCH", "--input", "-"], payload)

    def delete_entry(self, slot_id: str, name: str) -> None:
        payload = {"files": {name: None}}
        self._gh(["api", f"/gists/{slot_id}", "--method", "PATCH", "--input", "-"], payload)


class LocalStore(RemoteStore):
    """Directory-backed store.

    Every slot is a subdirectory holding a ``slot.json`` with its
    description; entries are plain files. Entries larger than
    ``inline_limit`` are reported truncated, like the gist API does,
    with a ``file://`` raw locator.
    """

    SLOT_META = "slot.json"

    def __init__(self, root: Path, inline_limit: Optional[int] = None):
        self.root = Path(root).expanduser()
        self.inline_limit = inline_limit

    @property
    def name(self) -> str:
        return "local"

    def available(self) -> bool:
        return True

    def _slot(self, slot_id: str) -> Path:
        slot = self.root / slot_id
        if not (slot / self.SLOT_META).is_file():
            raise TransportError(f"Slot not found: {slot_id}")
        return slot

    def create(self, description: str) -> str:
        slot_id = uuid.uuid4().hex
        slot = self.root / slot_id
        try:
            slot.mkdir(parents=True)
            (slot / self.SLOT_META).write_text(
                json.dumps({"description": description}, indent=2), encoding="utf-8"
            )
        except OSError as exc:
            raise TransportError(f"Could not create slot: {exc}") from exc
        logger.info("Created local profile slot: %s", slot)
        return slot_id

    def find_by_description(self, description: str) -> Optional[str]:
        if not self.root.is_dir():
            return None
        for meta in sorted(self.root.glob(f"*/{self.SLOT_META}")):
            try:
                data = json.loads(meta.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                continue
            if data.get("description") == description:
                return meta.parent.name
        return None

    def list_entry_names(self, slot_id: str) -> list[str]:
        slot = self._slot(slot_id)
        return sorted(
            p.name for p in slot.iterdir() if p.is_file() and p.name != self.SLOT_META
        )

    def read_entry(self, slot_id: str, name: str) -> Optional[RemoteEntry]:
        path = self._slot(slot_id) / name
        if not path.is_file():
            return None
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise TransportError(f"Could not read {name}: {exc}") from exc

        size = len(content.encode("utf-8"))
        truncated = self.inline_limit is not None and size > self.inline_limit
        return RemoteEntry(
            name=name,
            content=content[: self.inline_limit] if truncated else content,
            truncated=truncated,
            raw_url=path.resolve().as_uri(),
            size=size,
        )

    def fetch_raw(self, locator: str) -> bytes:
        parsed = urlparse(locator)
        if parsed.scheme != "file":
            raise TransportError(f"Unsupported raw locator: {locator}")
        try:
            return Path(unquote(parsed.path)).read_bytes()
        except OSError as exc:
            raise TransportError(f"Raw read failed: {exc}") from exc

    def write_entry(self, slot_id: str, name: str, content: str) -> None:
        path = self._slot(slot_id) / name
        tmp = path.with_name(f".{name}.tmp")
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise TransportError(f"Could not write {name}: {exc}") from exc

    def delete_entry(self, slot_id: str, name: str) -> None:
        path = self._slot(slot_id) / name
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise TransportError(f"Could not delete {name}: {exc}") from exc
