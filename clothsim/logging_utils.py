"""Shared logging helpers for the cloth simulator.

All simulator loggers live under the ``clothsim`` namespace. A single stderr
handler is installed on the namespace root; child loggers propagate to it.
"""

from __future__ import annotations

import logging
import os
from typing import Final

_ROOT_NAME: Final[str] = "clothsim"
_LOG_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LEVELS: Final[dict[str, int]] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


def _parse_level(level_str: str | None, default: int) -> int:
    if not level_str:
        return default
    return _LEVELS.get(level_str.strip().upper(), default)


def configure_root(level: int | str | None = None) -> logging.Logger:
    """Install (or re-install) the stderr handler on the ``clothsim`` logger.

    `level` may be an int or a level name; when omitted the `LOG_LEVEL`
    environment variable is consulted, falling back to INFO.
    """
    if isinstance(level, str):
        chosen_level = _parse_level(level, logging.INFO)
    elif level is not None:
        chosen_level = level
    else:
        chosen_level = _parse_level(os.environ.get("LOG_LEVEL"), logging.INFO)

    root = logging.getLogger(_ROOT_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(chosen_level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(chosen_level)
    root.propagate = False
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger in the ``clothsim`` namespace.

    ``get_logger("scheduler")`` and ``get_logger("clothsim.sim.scheduler")``
    both resolve below the package root. The root handler is configured lazily
    on first use.
    """
    if not logging.getLogger(_ROOT_NAME).handlers:
        configure_root()
    if name != _ROOT_NAME and not name.startswith(_ROOT_NAME + "."):
        name = f"{_ROOT_NAME}.{name}"
    return logging.getLogger(name)
