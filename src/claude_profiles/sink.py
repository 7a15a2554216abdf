"""Log sink and logging setup.

Components that report progress while running unattended (the save
scheduler, the watch loop) take a ``LogSink`` instead of writing to the
console. The sink decides what reaches the user: in quiet mode per-save
detail is dropped, in verbose mode everything goes through.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

_installed: list[logging.Handler] = []


class LogSink:
    """Leveled event sink backed by a ``logging.Logger``.

    Args:
        name: Logger name.
        verbose: Pass debug events through.
        quiet: Drop ``detail`` events (per-save chatter).
    """

    def __init__(self, name: str = "claude_profiles", verbose: bool = False, quiet: bool = False):
        self.logger = logging.getLogger(name)
        self.verbose = verbose
        self.quiet = quiet

    def emit(self, level: int, message: str, *args: Any, detail: bool = False) -> None:
        """Send one event.

        Args:
            level: ``logging`` level.
            message: %-style message.
            *args: Message arguments.
            detail: Event is per-save detail, suppressed in quiet mode.
        """
        if self.enabled(level, detail):
            self.logger.log(level, message, *args)

    def enabled(self, level: int, detail: bool = False) -> bool:
        if level <= logging.DEBUG and not self.verbose:
            return False
        return not (detail and self.quiet and level < logging.WARNING)

    def debug(self, message: str, *args: Any) -> None:
        self.emit(logging.DEBUG, message, *args)

    def info(self, message: str, *args: Any, detail: bool = False) -> None:
        self.emit(logging.INFO, message, *args, detail=detail)

    def warning(self, message: str, *args: Any) -> None:
        self.emit(logging.WARNING, message, *args)

    def error(self, message: str, *args: Any) -> None:
        self.emit(logging.ERROR, message, *args)


def default_log_path() -> Path:
    """``claude-profiles-<timestamp>.log`` in the working directory."""
    stamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
    return Path(f"claude-profiles-{stamp}.log")


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> Optional[Path]:
    """Configure console and optional file logging.

    Console output is plain messages. The file gets timestamps, logger
    names, and levels.

    Args:
        verbose: Show debug output on the console.
        log_file: Also write a detailed log here.

    Returns:
        The log file path actually opened, or None.
    """
    root = logging.getLogger()
    while _installed:
        old = _installed.pop()
        root.removeHandler(old)
        old.close()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console)
    _installed.append(console)

    if log_file is None:
        return None

    try:
        handler = logging.FileHandler(log_file)
    except OSError as exc:
        logging.getLogger("claude_profiles").warning(
            "Could not create log file %s: %s", log_file, exc
        )
        return None

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _installed.append(handler)
    root.setLevel(logging.DEBUG)
    logging.getLogger("claude_profiles").info("Logging initialized to file: %s", log_file)
    return Path(log_file)
