"""Feed assembly: cached published excerpts, age gate, personalization."""
from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from shortreads import config
from shortreads.backend import BackendError, client
from shortreads.services import (
    age_gate,
    cache_service,
    feed_ranking,
    history_service,
    preferences_service,
)
from shortreads.utils.identity import Viewer
from shortreads.utils.logging import get_logger

LOG = get_logger("feed_service")

FEED_CACHE_KEY = "feed:published_excerpts:v1"
FEED_SOURCE_LIMIT = 500
DEFAULT_FEED_LIMIT = 20
MAX_FEED_LIMIT = 100
_EXCERPT_COLUMNS = (
    "id,story_id,position,text,"
    "stories!inner(id,title,slug,author_id,genre,age_rating,status,created_at,"
    "likes_count,dislikes_count,literacy_score,authors(display_name,avatar_url))"
)


def flatten_excerpt(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Merge the embedded story/author fields into one flat feed item."""
    story = row.get("stories")
    if not isinstance(story, dict):
        return None
    author = story.get("authors") if isinstance(story.get("authors"), dict) else {}
    return {
        "excerpt_id": row.get("id"),
        "story_id": row.get("story_id") or story.get("id"),
        "position": row.get("position") or 0,
        "text": row.get("text") or "",
        "title": story.get("title"),
        "slug": story.get("slug"),
        "author_id": story.get("author_id"),
        "author_name": author.get("display_name"),
        "author_avatar": author.get("avatar_url"),
        "genre": story.get("genre"),
        "age_rating": story.get("age_rating"),
        "created_at": story.get("created_at"),
        "likes_count": story.get("likes_count") or 0,
        "dislikes_count": story.get("dislikes_count") or 0,
        "literacy_score": story.get("literacy_score"),
    }


def _fetch_published_excerpts() -> List[Dict[str, Any]]:
    rows = client.select(
        "excerpts",
        columns=_EXCERPT_COLUMNS,
        filters={"stories.status": client.eq("published")},
        order="story_id.desc,position.asc",
        limit=FEED_SOURCE_LIMIT,
    )
    items = []
    for row in rows:
        item = flatten_excerpt(row)
        if item is not None:
            items.append(item)
    LOG.debug("fetched %s published excerpts", len(items))
    return items


def published_excerpts() -> List[Dict[str, Any]]:
    payload = cache_service.cached_json(FEED_CACHE_KEY, config.feed_cache_ttl(), _fetch_published_excerpts)
    return payload if isinstance(payload, list) else []


def invalidate_feed_cache() -> None:
    cache_service.invalidate(FEED_CACHE_KEY)


def clamp_limit(raw: Any, default: int = DEFAULT_FEED_LIMIT) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return max(1, min(MAX_FEED_LIMIT, value))


def load_feed(
    viewer: Viewer,
    *,
    limit: int = DEFAULT_FEED_LIMIT,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    """Personalized feed for ``viewer``.

    Personal signals (history, preferences) are best effort: when they cannot
    be loaded the viewer still gets an unpersonalized feed.
    """
    items = age_gate.filter_allowed(published_excerpts(), viewer.confirmed_age)
    read_ids: set = set()
    weights: Dict[str, float] = {}
    if viewer.author_id is not None:
        try:
            read_ids = history_service.read_story_ids(viewer.author_id)
            weights = preferences_service.genre_weights(viewer.author_id)
        except BackendError as exc:
            LOG.warning("feed personalization skipped author_id=%s error=%s", viewer.author_id, exc.code)
    return feed_ranking.smart_sort(
        items,
        read_story_ids=read_ids,
        genre_weights=weights,
        now=now,
        rng=rng,
        limit=limit,
    )  # type: ignore[return-value]


__all__ = [
    "FEED_CACHE_KEY",
    "DEFAULT_FEED_LIMIT",
    "flatten_excerpt",
    "published_excerpts",
    "invalidate_feed_cache",
    "clamp_limit",
    "load_feed",
]
