"""Like/dislike reactions with toggle semantics.

Story counters (``likes_count``/``dislikes_count``) are maintained by the
backend's triggers on the ``reactions`` table; this module only writes rows.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from shortreads.backend import BackendNotFoundError, client
from shortreads.services import notifications_service, preferences_service
from shortreads.services.preferences_service import PreferenceValidationError
from shortreads.utils.identity import Viewer, ensure_authenticated
from shortreads.utils.logging import get_logger

LOG = get_logger("reactions_service")

KINDS = ("like", "dislike")
_PREFERENCE_DELTAS = {
    "like": preferences_service.LIKE_DELTA,
    "dislike": preferences_service.DISLIKE_DELTA,
}


class ReactionValidationError(ValueError):
    """Raised for unknown reaction kinds or stories."""


def normalize_kind(raw: Any) -> str:
    kind = str(raw or "").strip().lower()
    if kind not in KINDS:
        raise ReactionValidationError("unsupported_reaction")
    return kind


def current_reaction(author_id: int, story_id: int) -> Optional[Dict[str, Any]]:
    rows = client.select(
        "reactions",
        columns="id,kind",
        filters={"author_id": client.eq(author_id), "story_id": client.eq(story_id)},
        limit=1,
    )
    return rows[0] if rows else None


def toggle_outcome(previous: Optional[str], requested: str) -> Optional[str]:
    """Same kind twice removes the reaction, another kind replaces it."""
    return None if previous == requested else requested


def react(viewer: Viewer, story_id: int, raw_kind: Any) -> Dict[str, Any]:
    author_id = ensure_authenticated(viewer)
    kind = normalize_kind(raw_kind)
    try:
        story = client.select_one(
            "stories",
            columns="id,author_id,title,genre,status",
            filters={"id": client.eq(story_id)},
        )
    except BackendNotFoundError as exc:
        raise ReactionValidationError("story_not_found") from exc
    if story.get("status") != "published":
        raise ReactionValidationError("story_not_found")

    existing = current_reaction(author_id, story_id)
    previous = existing.get("kind") if existing else None
    outcome = toggle_outcome(previous, kind)

    if outcome is None:
        client.delete("reactions", filters={"id": client.eq(existing["id"])})  # type: ignore[index]
    elif existing:
        client.update("reactions", {"kind": outcome}, filters={"id": client.eq(existing["id"])})
    else:
        client.insert("reactions", {"author_id": author_id, "story_id": story_id, "kind": outcome}, returning=False)

    genre = story.get("genre")
    if genre:
        delta = 0.0
        if previous:
            delta -= _PREFERENCE_DELTAS[previous]
        if outcome:
            delta += _PREFERENCE_DELTAS[outcome]
        if delta:
            try:
                preferences_service.adjust(author_id, genre, delta)
            except PreferenceValidationError:
                LOG.debug("story genre not tracked genre=%s", genre)

    story_author = story.get("author_id")
    if outcome == "like" and previous != "like" and story_author and story_author != author_id:
        name = viewer.display_name or "Someone"
        notifications_service.notify(
            int(story_author),
            "like",
            f"{name} liked «{story.get('title', '')}».",
            story_id=story_id,
        )
    LOG.debug("reaction story_id=%s author_id=%s %s -> %s", story_id, author_id, previous, outcome)
    return {"story_id": story_id, "reaction": outcome, "previous": previous}


__all__ = [
    "KINDS",
    "ReactionValidationError",
    "normalize_kind",
    "current_reaction",
    "toggle_outcome",
    "react",
]
