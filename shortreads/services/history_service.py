"""Reading history records."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Set

from shortreads.backend import BackendError, client
from shortreads.services import preferences_service
from shortreads.services.preferences_service import PreferenceValidationError
from shortreads.utils.logging import get_logger

LOG = get_logger("history_service")
HISTORY_LIMIT = 1000


def read_story_ids(author_id: int) -> Set[int]:
    rows = client.select(
        "reading_history",
        columns="story_id",
        filters={"author_id": client.eq(author_id)},
        order="read_at.desc",
        limit=HISTORY_LIMIT,
    )
    ids: Set[int] = set()
    for row in rows:
        try:
            ids.add(int(row["story_id"]))
        except (KeyError, TypeError, ValueError):
            continue
    return ids


def mark_read(author_id: int, story_id: int, *, genre: Optional[str] = None) -> bool:
    """Record that the viewer opened the full story.

    Returns True when the story was not in the history before. The view
    counter and the genre preference only move on the first read.
    """
    first_read = story_id not in read_story_ids(author_id)
    client.upsert(
        "reading_history",
        {
            "author_id": author_id,
            "story_id": story_id,
            "read_at": datetime.now(timezone.utc).isoformat(),
        },
        on_conflict="author_id,story_id",
    )
    if not first_read:
        return False
    try:
        client.rpc("increment_story_views", {"p_story_id": story_id})
    except BackendError as exc:
        LOG.warning("view counter update failed story_id=%s error=%s", story_id, exc.code)
    if genre:
        try:
            preferences_service.adjust(author_id, genre, preferences_service.READ_DELTA)
        except PreferenceValidationError:
            LOG.debug("story genre not tracked genre=%s", genre)
    return True


__all__ = ["read_story_ids", "mark_read"]
