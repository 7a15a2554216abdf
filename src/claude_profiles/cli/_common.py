"""Shared utilities for all CLI command modules.

Provides the Rich console instance, manager construction from the
global options, and the error reporter every command exits through.
"""

from __future__ import annotations

import signal
import sys
import threading
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from ..auth import get_auth_status
from ..config import StoreBackend, load_config
from ..errors import (
    ExtractionFailed,
    InvalidProfileName,
    NoContent,
    PermissionDenied,
    ProfileError,
    ProfileNotFound,
    ProfileTooLarge,
    TransportError,
    VerificationFailed,
)
from ..models import VerificationResult, validate_profile_name
from ..profiles import ProfileManager
from ..sink import LogSink

console = Console()


def build_manager(ctx: click.Context, quiet: bool = False) -> ProfileManager:
    """Create a ProfileManager from the config file and global flags.

    Args:
        ctx: Click context carrying the global options in ``ctx.obj``.
        quiet: Drop per-save detail from watch-mode output.

    Returns:
        ProfileManager: Ready to run one command.
    """
    opts = ctx.obj or {}
    config = load_config(opts.get("config"))

    updates = {}
    if opts.get("backend"):
        updates["backend"] = StoreBackend(opts["backend"])
    if opts.get("skip_projects"):
        updates["skip_projects"] = True
    if updates:
        config = config.model_copy(update=updates)

    if config.backend == StoreBackend.GIST:
        check_gh_auth()

    sink = LogSink("claude_profiles.watch", verbose=opts.get("verbose", False), quiet=quiet)
    return ProfileManager(config=config, sink=sink)


def check_name(name: str) -> str:
    """Reject a bad profile name before any config, gh, or store access."""
    try:
        return validate_profile_name(name)
    except InvalidProfileName as exc:
        fail(exc)


def check_gh_auth() -> None:
    """Pre-flight for gist-backed commands. Exits when gh cannot be used."""
    status = get_auth_status()
    if status is None:
        console.print("[bold red]GitHub CLI (gh) is not installed[/]")
        console.print("\n  To install GitHub CLI:")
        console.print("  - macOS: [cyan]brew install gh[/]")
        console.print("  - Linux: see [cyan]https://github.com/cli/cli#installation[/]")
        console.print("  - Windows: [cyan]winget install --id GitHub.cli[/]")
        sys.exit(1)

    if not status.authenticated:
        console.print("[bold red]GitHub CLI is not authenticated[/]")
        console.print("  Run: [cyan]gh auth login -s gist[/]")
        sys.exit(1)

    if status.scopes and not status.has_gist_scope:
        console.print('[yellow]Warning: your GitHub token does not have "gist" scope[/]')
        console.print("  You may need to re-authenticate with: [cyan]gh auth login -s gist[/]\n")


def print_issues(result: VerificationResult) -> None:
    """Print the found entries and issues of a verification run."""
    for entry in result.found:
        count = result.file_counts.get(entry)
        suffix = f" ({count} files)" if count is not None else ""
        console.print(f"  [green]found[/] {entry}{suffix}")
    for issue in result.issues:
        color = "red" if issue.startswith("Missing:") else "yellow"
        console.print(f"  [{color}]{escape(issue)}[/]")


def fail(exc: ProfileError) -> NoReturn:
    """Report a profile error with a remediation hint and exit 1."""
    if isinstance(exc, VerificationFailed):
        console.print(f"[bold red]{escape(exc.message)}[/]")
        for issue in exc.issues:
            console.print(f"  [red]{escape(issue)}[/]")
    else:
        console.print(f"[bold red]{escape(str(exc))}[/]")

    if isinstance(exc, InvalidProfileName):
        console.print("  Example: [cyan]work[/], [cyan]personal-2[/]")
    elif isinstance(exc, ProfileNotFound):
        if exc.available:
            console.print(f"  Available profiles: {', '.join(exc.available)}")
        else:
            console.print("  No profiles stored yet. Create one with: [cyan]claude-profiles store <name>[/]")
    elif isinstance(exc, PermissionDenied):
        console.print("  Check your GitHub login: [cyan]claude-profiles auth[/]")
        console.print("  Grant gist access with: [cyan]gh auth refresh -s gist[/]")
    elif isinstance(exc, TransportError):
        console.print("  Check your internet connection and try again.")
    elif isinstance(exc, ProfileTooLarge):
        console.print("  Try again with [cyan]--skip-projects[/] to leave ~/.claude/projects out.")
    elif isinstance(exc, (VerificationFailed, ExtractionFailed)):
        console.print("  Nothing on disk was changed.")
    elif isinstance(exc, NoContent):
        console.print("  Make sure Claude has been set up on this machine.")
    sys.exit(1)


def run_watch(manager: ProfileManager, name: str) -> None:
    """Run watch mode in the foreground until Ctrl+C or SIGTERM."""
    stop_event = threading.Event()

    def _handle_signal(signum, frame):
        stop_event.set()

    if threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGTERM, signal.SIGINT):
            signal.signal(sig, _handle_signal)

    console.print(Panel(
        f"Watching for changes to profile [bold]{name}[/]\n"
        f"Debounce: {manager.config.settle_seconds:g}s | "
        f"Minimum interval: {manager.config.min_save_interval:g}s\n"
        "[dim]Press Ctrl+C to stop[/]",
        title="Watch Mode",
        border_style="cyan",
    ))
    try:
        saves = manager.watch(name, stop_event=stop_event)
    except ProfileError as exc:
        fail(exc)
    console.print(f"\n[green]Watch mode ended[/] - total saves: {saves}")
