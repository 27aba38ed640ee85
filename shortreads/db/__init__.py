"""Local cache database layer."""

from .engine import (
    app_session,
    get_engine,
    get_scoped_session,
    init_engine_once,
    reset_for_tests,
)

__all__ = [
    "app_session",
    "get_engine",
    "get_scoped_session",
    "init_engine_once",
    "reset_for_tests",
]
