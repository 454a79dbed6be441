"""Logging helpers for iGrade."""

from __future__ import annotations

import logging
from typing import Optional

_PACKAGE_LOGGER = "iGrade"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LOGGER: Optional[logging.Logger] = None


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger, or its child *name*.

    The first call installs a single stream handler on the ``iGrade`` logger;
    module loggers created with ``logging.getLogger(__name__)`` propagate to it.
    """

    global _LOGGER
    if _LOGGER is None:
        _LOGGER = logging.getLogger(_PACKAGE_LOGGER)
        if not _LOGGER.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(_FORMAT))
            _LOGGER.addHandler(handler)
        _LOGGER.setLevel(logging.INFO)
    return _LOGGER.getChild(name) if name else _LOGGER


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Set the package log *level* and return the configured logger.

    Unknown level names raise :class:`ValueError` so a typo on the command line
    does not silently fall back to the default verbosity.
    """

    logger = get_logger()
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    logger.setLevel(level)
    return logger


__all__ = ["configure_logging", "get_logger"]
