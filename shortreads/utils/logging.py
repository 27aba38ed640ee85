"""Logger factory for the shortreads package.

Every module logger hangs below the ``shortreads`` logger, which owns the
only handler. Module code calls ``get_logger("feed_service")`` and gets
``shortreads.feed_service``; records propagate to the package logger and stop
there.
"""
from __future__ import annotations

import logging
import threading

from shortreads import config as app_config

ROOT_LOGGER = "shortreads"
_FORMAT = "[shortreads] %(asctime)s %(levelname)s %(name)s %(message)s"
_LOCK = threading.Lock()
_configured = False


def _level() -> int:
    return getattr(logging, app_config.log_level_name(), logging.INFO)


def _configure_root() -> logging.Logger:
    global _configured
    root = logging.getLogger(ROOT_LOGGER)
    if _configured:
        return root
    with _LOCK:
        if not _configured:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(_FORMAT))
            root.addHandler(handler)
            root.setLevel(_level())
            root.propagate = False
            _configured = True
    return root


def refresh_level() -> int:
    """Re-read ``SHORTREADS_LOG_LEVEL``; app startup calls this once."""
    level = _level()
    _configure_root().setLevel(level)
    return level


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    root = _configure_root()
    if name == ROOT_LOGGER:
        return root
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


__all__ = ["ROOT_LOGGER", "get_logger", "refresh_level"]
