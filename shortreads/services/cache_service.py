"""TTL checks and read-through caching of backend payloads."""
from __future__ import annotations

import datetime
import time
from typing import Any, Callable, Dict, Optional

from shortreads import config
from shortreads.backend import BackendError
from shortreads.db.repositories import analysis_repo, cache_repo
from shortreads.utils.logging import get_logger

LOG = get_logger("cache_service")


def is_fresh(fetched_at: Optional[float], ttl_seconds: float, now: Optional[float] = None) -> bool:
    """True when ``fetched_at`` lies within the last ``ttl_seconds``.

    Timestamps in the future count as stale (clock skew between workers), and
    a non-positive TTL disables caching altogether.
    """
    if fetched_at is None or ttl_seconds <= 0:
        return False
    current = time.time() if now is None else now
    age = current - fetched_at
    return 0 <= age < ttl_seconds


def cached_json(
    cache_key: str,
    ttl_seconds: float,
    loader: Callable[[], Any],
    *,
    now: Optional[float] = None,
) -> Any:
    """Return the fresh payload stored under ``cache_key`` or reload it.

    When the loader fails with a backend error and an older entry exists the
    stale payload is served instead; without one the error propagates.
    """
    entry = cache_repo.get_entry(cache_key)
    if entry is not None and is_fresh(entry.fetched_at, ttl_seconds, now):
        LOG.debug("cache hit key=%s", cache_key)
        return entry.load_payload()
    try:
        payload = loader()
    except BackendError as exc:
        if entry is None:
            raise
        LOG.warning("serving stale cache key=%s after backend error=%s", cache_key, exc.code)
        return entry.load_payload()
    if ttl_seconds > 0:
        cache_repo.put_entry(cache_key, payload, fetched_at=time.time() if now is None else now)
    return payload


def invalidate(cache_key: str) -> None:
    if cache_repo.delete_entry(cache_key):
        LOG.debug("cache invalidated key=%s", cache_key)


def purge_expired(*, retention_days: Optional[int] = None, now: Optional[float] = None) -> Dict[str, int]:
    """Delete local cache rows older than the retention window."""
    days = config.cache_retention_days() if retention_days is None else retention_days
    if days <= 0:
        return {"cache_entries": 0, "analysis_results": 0}
    current = time.time() if now is None else now
    cutoff = current - days * 86400
    removed = {
        "cache_entries": cache_repo.purge_older_than(cutoff),
        "analysis_results": analysis_repo.purge_older_than(
            datetime.datetime.fromtimestamp(cutoff, datetime.timezone.utc).replace(tzinfo=None)
        ),
    }
    if any(removed.values()):
        LOG.info("purged expired cache rows %s", removed)
    return removed


__all__ = ["is_fresh", "cached_json", "invalidate", "purge_expired"]
