# src/runtime/logging_config.py
"""
Central logging configuration for the embodiment runtime.

Call configure_logging() from your main entrypoint once, for example:

    from runtime.logging_config import configure_logging
    configure_logging("DEBUG")

After that, navigation, session and bridge logs are visible on stdout.
"""

from __future__ import annotations

import logging
import sys
from typing import Union


def resolve_level(level: Union[int, str]) -> int:
    """Accept logging.INFO or "info"/"INFO"; unknown names raise ValueError."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging if no handlers are attached yet.

    Args:
        level: default logging level (e.g., logging.INFO, "DEBUG")
    """
    root = logging.getLogger()

    # Don't duplicate handlers if someone already configured logging.
    if root.handlers:
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(resolve_level(level))
