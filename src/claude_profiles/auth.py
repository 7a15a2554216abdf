"""GitHub CLI authentication diagnostics.

Used to explain permission failures: which account is logged in, and
whether its token carries the ``gist`` scope.
"""

from __future__ import annotations

import re
import subprocess
from typing import Optional

from pydantic import BaseModel, Field


class AuthStatus(BaseModel):
    """Parsed ``gh auth status`` output."""

    authenticated: bool = False
    account: Optional[str] = None
    protocol: Optional[str] = None
    token: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)
    has_gist_scope: bool = False
    raw_output: str = ""


_ACCOUNT_RE = re.compile(
    r"Logged in to github\.com account (\S+)|Logged in to [\w.]+ as (\S+)"
)
_PROTOCOL_RE = re.compile(r"Git operations protocol:\s*(\w+)")
_TOKEN_RE = re.compile(r"Token:\s*(\S+)")
_SCOPES_RE = re.compile(r"Token scopes:\s*(.+)")


def parse_auth_status(output: str, exit_code: int = 0) -> AuthStatus:
    """Parse ``gh auth status`` text.

    Only the first (active) account block is read. Scopes are taken from
    the whole ``Token scopes:`` line, quoted or comma separated.

    Args:
        output: Combined command output.
        exit_code: Exit status of ``gh auth status``.

    Returns:
        AuthStatus: Parsed details.
    """
    status = AuthStatus(authenticated=exit_code == 0, raw_output=output)

    match = _ACCOUNT_RE.search(output)
    if match:
        status.account = match.group(1) or match.group(2)

    match = _PROTOCOL_RE.search(output)
    if match:
        status.protocol = match.group(1)

    match = _TOKEN_RE.search(output)
    if match:
        status.token = match.group(1)

    match = _SCOPES_RE.search(output)
    if match:
        line = match.group(1)
        quoted = re.findall(r"'([^']+)'", line)
        status.scopes = quoted or [s.strip() for s in line.split(",") if s.strip()]
        status.has_gist_scope = "gist" in status.scopes

    if "You are not logged into any GitHub hosts" in output:
        status.authenticated = False
        status.account = None

    return status


def get_auth_status(gh_bin: str = "gh") -> Optional[AuthStatus]:
    """Run ``gh auth status``. Returns None when gh is not installed."""
    try:
        result = subprocess.run(
            [gh_bin, "auth", "status"],
            capture_output=True, text=True, check=False, timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    return parse_auth_status(result.stdout + result.stderr, result.returncode)
