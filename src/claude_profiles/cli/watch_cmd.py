"""Watch command: auto-save a profile while Claude is in use."""

from __future__ import annotations

import click

from ._common import build_manager, check_name, run_watch


def register_watch_commands(main: click.Group) -> None:
    """Register the watch command."""

    @main.command("watch")
    @click.argument("name")
    @click.option("--quiet", "-q", is_flag=True, help="Only report saves and errors.")
    @click.pass_context
    def watch_cmd(ctx, name: str, quiet: bool):
        """Watch for changes and auto-save to a profile.

        Saves wait for a short quiet period after the last change and
        are spaced at least the minimum interval apart (30s default).

        Examples:

            claude-profiles watch work

            claude-profiles --verbose --log watch work
        """
        check_name(name)
        manager = build_manager(ctx, quiet=quiet)
        run_watch(manager, name)
