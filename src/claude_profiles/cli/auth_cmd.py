"""Auth command: show GitHub CLI login details."""

from __future__ import annotations

import click

from ..auth import get_auth_status
from ._common import console

from rich.table import Table


def register_auth_commands(main: click.Group) -> None:
    """Register the auth command."""

    @main.command("auth")
    def auth_cmd():
        """Show the GitHub account and token scopes gh is using.

        Examples:

            claude-profiles auth
        """
        status = get_auth_status()
        if status is None:
            console.print("[bold red]GitHub CLI (gh) is not installed[/]")
            raise SystemExit(1)

        table = Table(title="GitHub Authentication", show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row(
            "Status",
            "[green]authenticated[/]" if status.authenticated else "[red]not logged in[/]",
        )
        table.add_row("Account", status.account or "[dim]unknown[/]")
        table.add_row("Protocol", status.protocol or "[dim]unknown[/]")
        table.add_row("Token", status.token or "[dim]unknown[/]")
        table.add_row("Scopes", ", ".join(status.scopes) or "[dim]none[/]")
        table.add_row(
            "Gist scope",
            "[green]yes[/]" if status.has_gist_scope else "[red]missing[/]",
        )
        console.print(table)

        if not status.authenticated:
            console.print("\n  Run: [cyan]gh auth login -s gist[/]")
            raise SystemExit(1)
        if not status.has_gist_scope:
            console.print("\n  Grant gist access with: [cyan]gh auth refresh -s gist[/]")
