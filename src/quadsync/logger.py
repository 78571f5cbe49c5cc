"""logger.py - Package logger setup shared by all quadsync modules."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL_ENV = "QUADSYNC_LOG_LEVEL"

_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    root = logging.getLogger("quadsync")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    level = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    root.setLevel(getattr(logging, level, logging.WARNING))
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``quadsync`` hierarchy.

    The package root logger is configured once, on first use, with a single
    stream handler and the level named by ``QUADSYNC_LOG_LEVEL``.
    """
    _configure_root()
    return logging.getLogger(name)
