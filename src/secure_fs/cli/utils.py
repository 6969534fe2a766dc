"""Utility functions for CLI module."""

import logging
import os
import platform
import sys
from pathlib import Path

from rich.console import Console

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_console(stderr: bool = False) -> Console:
    """Create Rich console with proper encoding for Windows.

    Args:
        stderr: Write to stderr; required once stdout carries the MCP stream

    Returns:
        Console: Configured Rich console instance
    """
    if platform.system() == "Windows" and not sys.stdout.isatty():
        encoding = (sys.stdout.encoding or "").lower()
        if "utf" not in encoding:
            # Force UTF-8 for better Unicode support in pipes
            os.environ["PYTHONIOENCODING"] = "utf-8"
            return Console(stderr=stderr, force_terminal=True, legacy_windows=False)
    return Console(stderr=stderr)


def setup_logging(level: str = "info", log_file: str | None = None) -> None:
    """Configure root logging for the server process.

    Logs go to ``log_file`` when given, otherwise to stderr. Stdout is never
    used because it carries the MCP protocol stream.

    Args:
        level: Log level name (debug, info, warning, error)
        log_file: Optional path of a log file, opened in append mode
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if log_file:
        Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(
            level=numeric_level,
            format=LOG_FORMAT,
            filename=str(Path(log_file).expanduser()),
            filemode="a",
            force=True,
        )
    else:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT, stream=sys.stderr, force=True)

    # The MCP SDK is chatty at INFO; keep it to warnings unless debugging
    if numeric_level > logging.DEBUG:
        logging.getLogger("mcp").setLevel(logging.WARNING)
