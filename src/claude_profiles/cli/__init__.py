"""
claude-profiles CLI -- named Claude configuration snapshots.

The main Click group is defined here and holds the global options.
Subcommands live in their own modules and are registered via
register functions.

Entry point: claude_profiles.cli:main
"""

from __future__ import annotations

from pathlib import Path

import click

from .. import __version__
from ..sink import default_log_path, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="claude-profiles")
@click.option("--verbose", is_flag=True, help="Enable verbose logging for debugging.")
@click.option("--log", "log_default", is_flag=True, help="Log output to claude-profiles-<timestamp>.log.")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Log output to this file.")
@click.option("--backend", type=click.Choice(["gist", "local"]), default=None, help="Remote store to use.")
@click.option("--skip-projects", is_flag=True, help="Leave ~/.claude/projects out of saved profiles.")
@click.option("--config", "config_file", type=click.Path(dir_okay=False), default=None, help="Config file path.")
@click.pass_context
def main(ctx, verbose, log_default, log_file, backend, skip_projects, config_file):
    """claude-profiles -- store, restore, and sync Claude configuration.

    Profile names must contain only lowercase letters, numbers, and hyphens.
    """
    target = Path(log_file) if log_file else (default_log_path() if log_default else None)
    opened = setup_logging(verbose=verbose, log_file=target)

    ctx.ensure_object(dict)
    ctx.obj.update(
        verbose=verbose,
        log_file=opened,
        backend=backend,
        skip_projects=skip_projects,
        config=config_file,
    )


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .profile_cmd import register_profile_commands
from .watch_cmd import register_watch_commands
from .auth_cmd import register_auth_commands

register_profile_commands(main)
register_watch_commands(main)
register_auth_commands(main)
