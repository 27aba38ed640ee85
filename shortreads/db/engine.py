"""Local cache database engine & session management.

The hosted backend owns every domain record; this SQLite file only keeps
cached feed payloads and literacy analysis results, so it can be deleted at
any time.
"""
from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session as SASession
from sqlalchemy.orm import scoped_session, sessionmaker

from shortreads import config as app_config
from shortreads.db.models import Base
from shortreads.utils.logging import get_logger

_engine: Optional[Engine] = None
_SessionFactory: Optional[Callable[[], SASession]] = None
_scoped: Optional[scoped_session] = None
_LOCK = threading.Lock()

LOG = get_logger("shortreads.db")


def _database_url(db_path: str) -> str:
    if db_path == ":memory:":
        return "sqlite:///:memory:"
    parent_dir = os.path.dirname(os.path.abspath(db_path)) or "."
    os.makedirs(parent_dir, exist_ok=True)
    if not os.access(parent_dir, os.W_OK):
        raise RuntimeError(f"cache DB directory not writable: {parent_dir}")
    return f"sqlite:///{db_path}"


def init_engine_once() -> None:
    global _engine, _SessionFactory, _scoped
    if _engine is not None:
        return
    with _LOCK:
        if _engine is not None:
            return
        db_path = app_config.get_cache_db_path()
        LOG.info("Initializing cache database engine at %s", db_path)
        _engine = create_engine(_database_url(db_path), future=True)
        _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False, class_=SASession)
        _scoped = scoped_session(_SessionFactory)
        _safe_create_schema()
        LOG.debug("cache schema ready")


def _safe_create_schema() -> None:
    """Create tables, tolerating a concurrent worker creating them first."""
    if _engine is None:
        return
    try:
        Base.metadata.create_all(_engine)
    except OperationalError as e:  # pragma: no cover - concurrency edge
        if "already exists" in str(e).lower():
            LOG.warning("Schema create encountered existing tables (benign race)")
        else:
            raise


def get_engine() -> Engine:
    if _engine is None:
        init_engine_once()
    return _engine  # type: ignore[return-value]


def get_scoped_session() -> scoped_session:
    if _scoped is None:
        init_engine_once()
    if _scoped is None:
        raise RuntimeError("Scoped session could not be initialized.")
    return _scoped


@contextmanager
def app_session() -> Iterator[SASession]:
    scoped = get_scoped_session()
    sess = scoped()
    try:
        yield sess
        sess.commit()
    except Exception:
        sess.rollback()
        raise
    finally:
        sess.close()


def reset_for_tests(drop: bool = False) -> None:
    global _engine, _SessionFactory, _scoped
    with _LOCK:
        if _scoped is not None:
            _scoped.remove()
        if _engine is not None and drop:
            try:
                Base.metadata.drop_all(_engine)
            except OperationalError:
                LOG.warning("Failed dropping tables during reset", exc_info=True)
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _SessionFactory = None
        _scoped = None


__all__ = [
    "init_engine_once",
    "get_engine",
    "get_scoped_session",
    "app_session",
    "reset_for_tests",
]
