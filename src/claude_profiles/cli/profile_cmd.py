"""Profile commands: list, store, restore, delete, verify."""

from __future__ import annotations

import click

from ..errors import ProfileError
from ..transfer import format_bytes
from ._common import build_manager, check_name, console, fail, print_issues, run_watch

from rich.panel import Panel
from rich.table import Table


def register_profile_commands(main: click.Group) -> None:
    """Register the one-shot profile commands."""

    @main.command("list")
    @click.pass_context
    def list_cmd(ctx):
        """List all saved profiles.

        Examples:

            claude-profiles list
        """
        manager = build_manager(ctx)
        try:
            names = manager.list_profiles()
        except ProfileError as exc:
            fail(exc)

        if not names:
            console.print("\n  [dim]No profiles found.[/]")
            console.print("  Create one with: [cyan]claude-profiles store <name>[/]\n")
            return

        table = Table(title="Saved Profiles")
        table.add_column("#", style="dim")
        table.add_column("Profile", style="cyan")
        for i, name in enumerate(names, 1):
            table.add_row(str(i), name)
        console.print(table)

    @main.command("store")
    @click.argument("name")
    @click.option("--watch", is_flag=True, help="Keep watching and auto-saving afterwards.")
    @click.pass_context
    def store_cmd(ctx, name: str, watch: bool):
        """Store the current Claude configuration as a profile.

        Examples:

            claude-profiles store work

            claude-profiles --skip-projects store work --watch
        """
        check_name(name)
        manager = build_manager(ctx)
        console.print(f"\n[cyan]Storing profile '{name}'...[/]")
        try:
            result = manager.store(name)
        except ProfileError as exc:
            fail(exc)

        size = result.size_check
        console.print(Panel(
            f"[bold green]Profile stored[/]\n"
            f"Profile: {result.profile}\n"
            f"Archive: {format_bytes(size.size)}\n"
            f"Encoded: {format_bytes(size.encoded_size)}",
            title="Store Complete",
            border_style="green",
        ))
        if size.exceeds_web_interface_limit:
            console.print("[yellow]This profile is too large to view in the gist web interface.[/]")
        elif size.is_large:
            console.print("[yellow]This profile is large. Consider --skip-projects.[/]")

        if watch:
            run_watch(manager, name)

    @main.command("restore")
    @click.argument("name")
    @click.option("--watch", is_flag=True, help="Keep watching and auto-saving afterwards.")
    @click.pass_context
    def restore_cmd(ctx, name: str, watch: bool):
        """Restore a saved profile over the local configuration.

        The profile is downloaded and verified before any local file
        is changed.

        Examples:

            claude-profiles restore personal

            claude-profiles restore work --watch
        """
        check_name(name)
        manager = build_manager(ctx)
        console.print(f"\n[cyan]Restoring profile '{name}'...[/]")
        try:
            result = manager.restore(name)
        except ProfileError as exc:
            fail(exc)

        restored = "\n".join(f"  {path}" for path in result.restored) or "  (nothing)"
        creds = "\n[green]macOS Keychain credentials restored[/]" if result.credentials_restored else ""
        console.print(Panel(
            f"[bold green]Profile restored[/]\n"
            f"Profile: {result.profile}\n"
            f"Restored:\n{restored}{creds}",
            title="Restore Complete",
            border_style="green",
        ))
        console.print("[dim]Restart Claude to pick up the restored configuration.[/]")

        if watch:
            run_watch(manager, name)

    @main.command("delete")
    @click.argument("name")
    @click.pass_context
    def delete_cmd(ctx, name: str):
        """Delete a saved profile.

        Examples:

            claude-profiles delete old-profile
        """
        check_name(name)
        manager = build_manager(ctx)
        try:
            manager.delete(name)
        except ProfileError as exc:
            fail(exc)
        console.print(f"[green]Profile '{name}' deleted[/]")

    @main.command("verify")
    @click.argument("name")
    @click.pass_context
    def verify_cmd(ctx, name: str):
        """Verify a profile contains the essential files.

        Exits non-zero when an essential entry is missing.

        Examples:

            claude-profiles verify work
        """
        check_name(name)
        manager = build_manager(ctx)
        console.print(f"\n[cyan]Verifying profile '{name}'...[/]")
        try:
            result = manager.verify(name)
        except ProfileError as exc:
            fail(exc)

        print_issues(result)
        console.print(f"  Total size of checked files: {format_bytes(result.total_size)}")
        if result.valid:
            console.print(f"\n[bold green]Profile '{name}' is valid[/]")
        else:
            console.print(f"\n[bold red]Profile '{name}' is missing essential files[/]")
            raise SystemExit(1)
