"""
Profile tool configuration -- where profiles go and how watch mode paces itself.

Loaded from ``~/.config/claude-profiles/config.yaml`` (or the file named
by ``CLAUDE_PROFILES_CONFIG``). A missing or broken file means defaults.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from . import CONFIG_PATH
from .scheduler import DEFAULT_MIN_SAVE_INTERVAL, DEFAULT_SETTLE_SECONDS
from .stores import GistStore, LocalStore, RemoteStore
from .transfer import SLOT_DESCRIPTION

logger = logging.getLogger("claude_profiles.config")


class StoreBackend(str, Enum):
    """Supported remote stores."""

    GIST = "gist"
    LOCAL = "local"


class ProfilesConfig(BaseModel):
    """Complete configuration for claude-profiles."""

    backend: StoreBackend = StoreBackend.GIST
    local_path: Path = Path("~/.claude-profiles/store")
    slot_description: str = SLOT_DESCRIPTION
    home: Optional[Path] = None

    settle_seconds: float = Field(default=DEFAULT_SETTLE_SECONDS, gt=0)
    min_save_interval: float = Field(default=DEFAULT_MIN_SAVE_INTERVAL, ge=0)
    keychain_poll_interval: float = Field(default=5.0, gt=0)

    skip_projects: bool = False
    skip_unchanged: bool = True
    inline_limit: Optional[int] = None


def config_path(path: Optional[Path | str] = None) -> Path:
    return Path(path or CONFIG_PATH).expanduser()


def load_config(path: Optional[Path | str] = None) -> ProfilesConfig:
    """Load configuration from disk.

    Args:
        path: Config file. Defaults to CLAUDE_PROFILES_CONFIG.

    Returns:
        ProfilesConfig: Parsed config, or defaults on any problem.
    """
    config_file = config_path(path)
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            return ProfilesConfig(**data)
        except (yaml.YAMLError, ValueError, TypeError, OSError) as exc:
            logger.warning("Failed to load config %s: %s", config_file, exc)
    return ProfilesConfig()


def create_store(config: ProfilesConfig) -> RemoteStore:
    """Instantiate the configured remote store.

    Raises:
        ValueError: If the backend is not supported.
    """
    factories = {
        StoreBackend.GIST: lambda: GistStore(),
        StoreBackend.LOCAL: lambda: LocalStore(
            config.local_path, inline_limit=config.inline_limit
        ),
    }
    factory = factories.get(config.backend)
    if not factory:
        raise ValueError(f"Unsupported backend: {config.backend}")
    return factory()
