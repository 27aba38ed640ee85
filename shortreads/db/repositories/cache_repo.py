"""Repository helpers for cached backend payloads."""
from __future__ import annotations

import json
import time
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

from shortreads.db import app_session
from shortreads.db.models import FeedCacheEntry
from shortreads.utils.logging import get_logger

LOG = get_logger("cache_repo")


def _find(session, cache_key: str) -> Optional[FeedCacheEntry]:
    return (
        session.query(FeedCacheEntry)
        .filter(FeedCacheEntry.cache_key == cache_key)
        .one_or_none()
    )


def get_entry(cache_key: str) -> Optional[FeedCacheEntry]:
    with app_session() as session:
        return _find(session, cache_key)


def put_entry(cache_key: str, payload: Any, *, fetched_at: Optional[float] = None) -> FeedCacheEntry:
    """Create or replace the entry stored under ``cache_key``.

    Two workers missing the cache at once both try to insert; the loser of
    the unique-key race overwrites the winner's row instead.
    """
    stamp = time.time() if fetched_at is None else fetched_at
    encoded = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    try:
        with app_session() as session:
            entry = _find(session, cache_key)
            if entry is None:
                entry = FeedCacheEntry(cache_key=cache_key, payload=encoded, fetched_at=stamp)
                session.add(entry)
            else:
                entry.payload = encoded
                entry.fetched_at = stamp
            return entry
    except IntegrityError:
        LOG.debug("cache entry stored concurrently key=%s", cache_key)
        with app_session() as session:
            entry = _find(session, cache_key)
            if entry is None:
                raise
            entry.payload = encoded
            entry.fetched_at = stamp
            return entry


def delete_entry(cache_key: str) -> bool:
    with app_session() as session:
        deleted = (
            session.query(FeedCacheEntry)
            .filter(FeedCacheEntry.cache_key == cache_key)
            .delete(synchronize_session=False)
        )
        return bool(deleted)


def purge_older_than(cutoff: float) -> int:
    """Drop entries fetched before ``cutoff`` (unix seconds); returns count."""
    with app_session() as session:
        return (
            session.query(FeedCacheEntry)
            .filter(FeedCacheEntry.fetched_at < cutoff)
            .delete(synchronize_session=False)
        )


__all__ = [
    "get_entry",
    "put_entry",
    "delete_entry",
    "purge_older_than",
]
