"""Logging configuration for the command line entrypoint."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "WARNING") -> None:
    """Install one stream handler on the package logger."""
    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {level}")
    package_logger = logging.getLogger("taller_client")
    package_logger.setLevel(resolved)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_taller_cli", False):
            package_logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._taller_cli = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
