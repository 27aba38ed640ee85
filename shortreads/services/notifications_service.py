"""Author notifications (likes, moderation decisions)."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from shortreads.backend import BackendError, client
from shortreads.utils.logging import get_logger

LOG = get_logger("notifications_service")

KINDS = ("like", "story_approved", "story_rejected", "story_queued")
_COLUMNS = "id,author_id,kind,story_id,message,is_read,created_at"


def notify(author_id: int, kind: str, message: str, *, story_id: Optional[int] = None) -> bool:
    """Insert a notification for ``author_id``; failures are logged, not raised.

    Notifications are a side effect of another action (a like, a moderation
    decision) which must not fail because of them.
    """
    if kind not in KINDS:
        raise ValueError("unsupported_notification_kind")
    row = {
        "author_id": author_id,
        "kind": kind,
        "story_id": story_id,
        "message": message,
        "is_read": False,
    }
    try:
        client.insert("notifications", row, service=True, returning=False)
    except BackendError as exc:
        LOG.warning("notification insert failed author_id=%s kind=%s error=%s", author_id, kind, exc.code)
        return False
    LOG.debug("notification queued author_id=%s kind=%s story_id=%s", author_id, kind, story_id)
    return True


def list_for(author_id: int, *, limit: int = 50) -> List[Dict[str, Any]]:
    return client.select(
        "notifications",
        columns=_COLUMNS,
        filters={"author_id": client.eq(author_id)},
        order="created_at.desc",
        limit=max(1, min(limit, 200)),
    )


def unread_count(author_id: int) -> int:
    rows = client.select(
        "notifications",
        columns="id",
        filters={"author_id": client.eq(author_id), "is_read": client.eq(False)},
        limit=200,
    )
    return len(rows)


def mark_all_read(author_id: int) -> int:
    rows = client.update(
        "notifications",
        {"is_read": True},
        filters={"author_id": client.eq(author_id), "is_read": client.eq(False)},
    )
    return len(rows)


__all__ = ["KINDS", "notify", "list_for", "unread_count", "mark_all_read"]
