"""
claude-profiles -- named Claude configuration snapshots.

Store your ~/.claude setup in a secret gist, restore it anywhere,
and keep it in sync while you work.
"""

import os

__version__ = "0.1.0"
__author__ = "claude-profiles contributors"

PROFILES_HOME = os.environ.get("CLAUDE_PROFILES_HOME", "~")
CONFIG_PATH = os.environ.get(
    "CLAUDE_PROFILES_CONFIG", "~/.config/claude-profiles/config.yaml"
)
