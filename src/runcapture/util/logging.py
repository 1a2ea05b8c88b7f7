"""Logging helpers shared by the runner and the CLI."""

from __future__ import annotations

import logging
from typing import Final

PACKAGE_LOGGER: Final[str] = "runcapture"
DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "WARNING", fmt: str | None = None) -> None:
    """Install a root handler so runner diagnostics reach stderr.

    Args:
        level: Level name such as "DEBUG" or "warning". Unknown names mean WARNING.
        fmt: Optional record format; defaults to :data:`DEFAULT_LOG_FORMAT`.
    """

    logging.basicConfig(
        level=resolve_level(level),
        format=fmt or DEFAULT_LOG_FORMAT,
    )


def resolve_level(level: str) -> int:
    """Map a level name to its numeric value, falling back to WARNING."""

    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.WARNING


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the package logger."""

    if name != PACKAGE_LOGGER and not name.startswith(f"{PACKAGE_LOGGER}."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
