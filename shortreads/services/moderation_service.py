"""Moderation queue for stories that were not published automatically."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shortreads.backend import BackendNotFoundError, client
from shortreads.services import feed_service, notifications_service
from shortreads.utils.logging import get_logger

LOG = get_logger("moderation_service")

REASONS = ("low_literacy", "analysis_unavailable", "edited_low_literacy")
_COLUMNS = (
    "id,story_id,reason,literacy_score,status,note,created_at,decided_at,"
    "stories(id,title,slug,author_id,genre,age_rating,body)"
)


class ModerationError(RuntimeError):
    """Raised when a queue entry cannot be decided."""


def enqueue(story: Dict[str, Any], reason: str, literacy_score: Optional[float] = None) -> Dict[str, Any]:
    if reason not in REASONS:
        raise ValueError("unsupported_reason")
    row = {
        "story_id": story["id"],
        "reason": reason,
        "literacy_score": literacy_score,
        "status": "pending",
    }
    created = client.insert("moderation_queue", row, service=True)
    LOG.info("story queued for moderation story_id=%s reason=%s score=%s", story["id"], reason, literacy_score)
    author_id = story.get("author_id")
    if author_id:
        notifications_service.notify(
            int(author_id),
            "story_queued",
            f"«{story.get('title', '')}» is waiting for moderation.",
            story_id=story["id"],
        )
    return created[0] if created else row


def list_pending(*, limit: int = 100) -> List[Dict[str, Any]]:
    return client.select(
        "moderation_queue",
        columns=_COLUMNS,
        filters={"status": client.eq("pending")},
        order="created_at.asc",
        limit=limit,
        service=True,
    )


def _load_entry(entry_id: int) -> Dict[str, Any]:
    try:
        return client.select_one(
            "moderation_queue",
            columns=_COLUMNS,
            filters={"id": client.eq(entry_id)},
            service=True,
        )
    except BackendNotFoundError as exc:
        raise ModerationError("entry_not_found") from exc


def _set_story_status(story_id: int, approve: bool) -> None:
    client.update(
        "stories",
        {"status": "published" if approve else "rejected"},
        filters={"id": client.eq(story_id)},
        service=True,
    )


def _restore_story_status(entry_id: int, story_id: int) -> None:
    """Re-apply the decision that won a concurrent race for ``entry_id``."""
    winner = _load_entry(entry_id)
    if winner.get("status") in ("approved", "rejected"):
        _set_story_status(story_id, winner["status"] == "approved")
    LOG.warning(
        "moderation entry decided concurrently entry_id=%s status=%s", entry_id, winner.get("status")
    )


def _decide(entry_id: int, *, approve: bool, note: Optional[str]) -> Dict[str, Any]:
    entry = _load_entry(entry_id)
    if entry.get("status") != "pending":
        raise ModerationError("already_decided")
    decided_at = datetime.now(timezone.utc).isoformat()
    status = "approved" if approve else "rejected"
    # entry stays pending until the story update succeeds
    _set_story_status(entry["story_id"], approve)
    decided = client.update(
        "moderation_queue",
        {"status": status, "note": (note or "").strip() or None, "decided_at": decided_at},
        filters={"id": client.eq(entry_id), "status": client.eq("pending")},
        service=True,
    )
    if not decided:
        _restore_story_status(entry_id, entry["story_id"])
        raise ModerationError("already_decided")
    if approve:
        feed_service.invalidate_feed_cache()

    story = entry.get("stories") or {}
    author_id = story.get("author_id")
    if author_id:
        title = story.get("title", "")
        if approve:
            message = f"«{title}» has been published."
        else:
            message = f"«{title}» was rejected." + (f" {note.strip()}" if note and note.strip() else "")
        notifications_service.notify(
            int(author_id),
            "story_approved" if approve else "story_rejected",
            message,
            story_id=entry["story_id"],
        )
    LOG.info("moderation decision entry_id=%s story_id=%s status=%s", entry_id, entry["story_id"], status)
    return {"id": entry_id, "story_id": entry["story_id"], "status": status, "decided_at": decided_at}


def approve(entry_id: int, note: Optional[str] = None) -> Dict[str, Any]:
    return _decide(entry_id, approve=True, note=note)


def reject(entry_id: int, note: Optional[str] = None) -> Dict[str, Any]:
    return _decide(entry_id, approve=False, note=note)


__all__ = [
    "REASONS",
    "ModerationError",
    "enqueue",
    "list_pending",
    "approve",
    "reject",
]
