"""Author profiles: lookup, Telegram sign-in, short-lived profile cache."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from shortreads.backend import BackendNotFoundError, client
from shortreads.utils.logging import get_logger

LOG = get_logger("authors_service")

_COLUMNS = "id,telegram_id,display_name,avatar_url,bio,created_at"
MAX_DISPLAY_NAME_CHARS = 80
MAX_BIO_CHARS = 500


class AuthorValidationError(ValueError):
    """Raised for invalid profile edits."""


@dataclass
class _ProfileCacheEntry:
    profile: Dict[str, Any]
    fetched_at: float


_PROFILE_CACHE: Dict[int, _ProfileCacheEntry] = {}
_PROFILE_CACHE_TTL = 600.0  # seconds
_PROFILE_CACHE_LOCK = threading.Lock()


def get_author(author_id: int, *, force_refresh: bool = False) -> Optional[Dict[str, Any]]:
    now = time.time()
    with _PROFILE_CACHE_LOCK:
        entry = _PROFILE_CACHE.get(author_id)
        if entry and not force_refresh and now - entry.fetched_at < _PROFILE_CACHE_TTL:
            return entry.profile
    try:
        profile = client.select_one("authors", columns=_COLUMNS, filters={"id": client.eq(author_id)})
    except BackendNotFoundError:
        return None
    with _PROFILE_CACHE_LOCK:
        _PROFILE_CACHE[author_id] = _ProfileCacheEntry(profile=profile, fetched_at=time.time())
    return profile


def invalidate(author_id: int) -> None:
    with _PROFILE_CACHE_LOCK:
        _PROFILE_CACHE.pop(author_id, None)


def clear_cache() -> None:
    with _PROFILE_CACHE_LOCK:
        _PROFILE_CACHE.clear()


def find_by_telegram_id(telegram_id: str) -> Optional[Dict[str, Any]]:
    rows = client.select(
        "authors",
        columns=_COLUMNS,
        filters={"telegram_id": client.eq(telegram_id)},
        limit=1,
    )
    return rows[0] if rows else None


def find_or_create(identity: Dict[str, Any]) -> Dict[str, Any]:
    """Return the author for a verified Telegram identity, creating it once."""
    telegram_id = str(identity["telegram_id"])
    existing = find_by_telegram_id(telegram_id)
    if existing:
        return existing
    row = {
        "telegram_id": telegram_id,
        "display_name": identity.get("display_name") or f"reader{telegram_id}",
        "avatar_url": identity.get("photo_url"),
    }
    created = client.insert("authors", row)
    if not created:
        # Insert raced with another login; the row exists now.
        again = find_by_telegram_id(telegram_id)
        if again is None:
            raise BackendNotFoundError("author_create_failed")
        return again
    LOG.info("author created id=%s telegram_id=%s", created[0].get("id"), telegram_id)
    return created[0]


def update_profile(author_id: int, *, display_name: Optional[str] = None, bio: Optional[str] = None) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    if display_name is not None:
        cleaned = display_name.strip()
        if not cleaned:
            raise AuthorValidationError("display_name_required")
        if len(cleaned) > MAX_DISPLAY_NAME_CHARS:
            raise AuthorValidationError("display_name_too_long")
        values["display_name"] = cleaned
    if bio is not None:
        if len(bio) > MAX_BIO_CHARS:
            raise AuthorValidationError("bio_too_long")
        values["bio"] = bio.strip()
    if not values:
        raise AuthorValidationError("nothing_to_update")
    rows = client.update("authors", values, filters={"id": client.eq(author_id)})
    invalidate(author_id)
    if not rows:
        raise BackendNotFoundError("not_found", 404, {"table": "authors"})
    return rows[0]


__all__ = [
    "AuthorValidationError",
    "get_author",
    "invalidate",
    "clear_cache",
    "find_by_telegram_id",
    "find_or_create",
    "update_profile",
]
