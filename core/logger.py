"""
logger.py — loguru setup shared by the engine and the tray owner.

Console output goes to stderr (when there is one; pythonw has none) and a
rotating debug log is kept next to the settings file.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger

_LOG_INITIALISED = False
# Shared by the log file and settings.json
APP_DIR = Path(os.environ.get("LOCALAPPDATA", os.path.expanduser("~"))) / "SleepTimer"
DEFAULT_LOG_PATH = APP_DIR / "sleep-timer.log"


def configure(log_path: Optional[Path] = None, console_level: str = "INFO") -> None:
    """Install the stderr and file sinks. Only the first call has an effect."""
    global _LOG_INITIALISED
    if _LOG_INITIALISED:
        return
    target = log_path or DEFAULT_LOG_PATH
    target.parent.mkdir(parents=True, exist_ok=True)

    _logger.remove()
    if sys.stderr is not None:
        _logger.add(sys.stderr, level=console_level, enqueue=True)
    _logger.add(
        target,
        level="DEBUG",
        rotation="1 MB",
        retention=3,
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )
    _LOG_INITIALISED = True


def get_logger():
    """Return the shared loguru logger (sinks are installed by ``configure``)."""
    return _logger
