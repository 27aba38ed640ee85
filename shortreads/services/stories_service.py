"""Story publishing, editing and lookup.

Publishing flow:
    validate -> slug -> literacy analysis -> insert story -> insert excerpts
    -> queue for moderation when the score is low or unavailable.

Edits are capped per story (``SHORTREADS_MAX_STORY_EDITS``); the cap is
enforced here and the update is conditional on the ``edit_count`` we read so
two parallel edits cannot both slip under it.
"""
from __future__ import annotations

import re
import secrets
import unicodedata
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shortreads import config
from shortreads.backend import BackendError, BackendNotFoundError, client
from shortreads.services import age_gate, analysis_service, feed_service, moderation_service
from shortreads.services.preferences_service import GENRES, PreferenceValidationError, normalize_genre
from shortreads.utils.identity import PermissionError, Viewer, ensure_authenticated
from shortreads.utils.logging import get_logger

LOG = get_logger("stories_service")

MAX_TITLE_CHARS = 200
MIN_BODY_CHARS = 200
MAX_BODY_CHARS = 50_000
EXCERPT_MAX_CHARS = 600
MAX_EXCERPTS = 3
EDITABLE_FIELDS = ("title", "body", "genre", "age_rating")
_STORY_COLUMNS = (
    "id,author_id,title,slug,body,genre,age_rating,status,edit_count,literacy_score,"
    "likes_count,dislikes_count,views_count,created_at,updated_at"
)
_STORY_WITH_AUTHOR = _STORY_COLUMNS + ",authors(id,display_name,avatar_url)"

_TRANSLIT = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ё": "e",
    "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m",
    "н": "n", "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u",
    "ф": "f", "х": "h", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "sch", "ъ": "",
    "ы": "y", "ь": "", "э": "e", "ю": "yu", "я": "ya", "і": "i", "ї": "yi",
    "є": "ye", "ґ": "g",
}
_SLUG_JUNK_RE = re.compile(r"[^a-z0-9]+")
_PARAGRAPH_RE = re.compile(r"\r?\n")
MAX_SLUG_BASE = 60


class StoryValidationError(ValueError):
    """Raised when story input fails validation."""


class StoryNotFoundError(LookupError):
    """Raised when a story does not exist or is hidden from the viewer."""


class EditLimitReachedError(RuntimeError):
    """Raised when the story used up its edits."""


class StoryConflictError(RuntimeError):
    """Raised when the story changed between read and conditional update."""


# ---------------- text helpers ---------------

def slugify(title: str, *, suffix: Optional[str] = None) -> str:
    lowered = (title or "").strip().lower()
    translit = "".join(_TRANSLIT.get(ch, ch) for ch in lowered)
    ascii_only = unicodedata.normalize("NFKD", translit).encode("ascii", "ignore").decode("ascii")
    base = _SLUG_JUNK_RE.sub("-", ascii_only).strip("-")[:MAX_SLUG_BASE].strip("-") or "story"
    tail = suffix if suffix is not None else secrets.token_hex(3)
    return f"{base}-{tail}" if tail else base


def _paragraphs(body: str) -> List[str]:
    return [part.strip() for part in _PARAGRAPH_RE.split(body or "") if part.strip()]


def _cut_at_word(text: str, limit: int) -> Tuple[str, str]:
    idx = text.rfind(" ", 0, limit + 1)
    if idx < limit // 2:
        idx = limit
    return text[:idx].rstrip(), text[idx:].lstrip()


def split_excerpts(body: str, *, max_chars: int = EXCERPT_MAX_CHARS, max_excerpts: int = MAX_EXCERPTS) -> List[str]:
    """Cut the opening of ``body`` into feed-sized fragments.

    Paragraphs are packed together while they fit ``max_chars``; a paragraph
    longer than that is cut at a word boundary. Fragments are never empty.
    """
    if max_chars <= 0 or max_excerpts <= 0:
        return []
    chunks: List[str] = []
    current = ""
    for paragraph in _paragraphs(body):
        remaining = paragraph
        while remaining:
            if len(chunks) >= max_excerpts:
                return chunks
            if current:
                if len(current) + 2 + len(remaining) <= max_chars:
                    current = f"{current}\n\n{remaining}"
                    remaining = ""
                else:
                    chunks.append(current)
                    current = ""
                continue
            if len(remaining) <= max_chars:
                current = remaining
                remaining = ""
            else:
                piece, remaining = _cut_at_word(remaining, max_chars)
                chunks.append(piece)
    if current and len(chunks) < max_excerpts:
        chunks.append(current)
    return chunks


def validate_story_fields(values: Mapping[str, Any]) -> Dict[str, Any]:
    title = str(values.get("title") or "").strip()
    if not title:
        raise StoryValidationError("title_required")
    if len(title) > MAX_TITLE_CHARS:
        raise StoryValidationError("title_too_long")
    body = str(values.get("body") or "").strip()
    if len(body) < MIN_BODY_CHARS:
        raise StoryValidationError("body_too_short")
    if len(body) > MAX_BODY_CHARS:
        raise StoryValidationError("body_too_long")
    try:
        genre = normalize_genre(values.get("genre"))
    except PreferenceValidationError as exc:
        raise StoryValidationError("unsupported_genre") from exc
    try:
        age_rating = age_gate.normalize_rating(values.get("age_rating"))
    except age_gate.AgeGateError as exc:
        raise StoryValidationError("invalid_age_rating") from exc
    return {"title": title, "body": body, "genre": genre, "age_rating": age_rating}


def edits_remaining(story: Mapping[str, Any], max_edits: Optional[int] = None) -> int:
    limit = config.max_story_edits() if max_edits is None else max_edits
    try:
        used = int(story.get("edit_count") or 0)
    except (TypeError, ValueError):
        used = 0
    return max(0, limit - used)


def _moderation_decision(analysis: Optional[analysis_service.AnalysisResult]) -> Tuple[str, Optional[str]]:
    if analysis is None:
        return "pending", "analysis_unavailable"
    if analysis.score < config.moderation_threshold():
        return "pending", "low_literacy"
    return "published", None


def _replace_excerpts(story_id: int, body: str, *, existing: bool) -> int:
    if existing:
        client.delete("excerpts", filters={"story_id": client.eq(story_id)})
    chunks = split_excerpts(body)
    rows = [{"story_id": story_id, "position": idx, "text": text} for idx, text in enumerate(chunks)]
    if rows:
        client.insert("excerpts", rows, returning=False)
    return len(rows)


def _load_story(story_id: int, *, columns: str = _STORY_COLUMNS) -> Dict[str, Any]:
    try:
        return client.select_one("stories", columns=columns, filters={"id": client.eq(story_id)})
    except BackendNotFoundError as exc:
        raise StoryNotFoundError("story_not_found") from exc


def _discard_story(story_id: int, author_id: int) -> None:
    """Remove a story whose excerpts or moderation entry could not be written."""
    LOG.warning("publish incomplete, removing story id=%s author_id=%s", story_id, author_id)
    try:
        client.delete("excerpts", filters={"story_id": client.eq(story_id)})
        client.delete(
            "stories",
            filters={"id": client.eq(story_id), "author_id": client.eq(author_id)},
        )
    except BackendError as exc:
        LOG.error("failed removing incomplete story id=%s error=%s", story_id, exc.code)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


# ---------------- operations ---------------

def publish_story(viewer: Viewer, values: Mapping[str, Any]) -> Dict[str, Any]:
    author_id = ensure_authenticated(viewer)
    fields = validate_story_fields(values)
    analysis = analysis_service.try_analyze(fields["body"])
    status, reason = _moderation_decision(analysis)
    row = dict(fields)
    row.update(
        {
            "author_id": author_id,
            "slug": slugify(fields["title"]),
            "status": status,
            "edit_count": 0,
            "literacy_score": analysis.score if analysis else None,
        }
    )
    created = client.insert("stories", row)
    if not created:
        raise BackendError("invalid_payload", details={"table": "stories"})
    story = created[0]
    try:
        excerpt_count = _replace_excerpts(story["id"], fields["body"], existing=False)
        if reason:
            moderation_service.enqueue(story, reason, analysis.score if analysis else None)
    except BackendError:
        _discard_story(story["id"], author_id)
        raise
    if not reason:
        feed_service.invalidate_feed_cache()
    LOG.info(
        "story created id=%s author_id=%s status=%s excerpts=%s",
        story["id"],
        author_id,
        status,
        excerpt_count,
    )
    return {
        "story": story,
        "status": status,
        "moderation_reason": reason,
        "literacy_score": analysis.score if analysis else None,
        "edits_remaining": edits_remaining(story),
    }


def edit_story(viewer: Viewer, story_id: int, changes: Mapping[str, Any]) -> Dict[str, Any]:
    author_id = ensure_authenticated(viewer)
    story = _load_story(story_id)
    if story.get("author_id") != author_id:
        raise PermissionError("not_owner")
    max_edits = config.max_story_edits()
    if edits_remaining(story, max_edits) <= 0:
        raise EditLimitReachedError("edit_limit_reached")

    requested = {key: changes[key] for key in EDITABLE_FIELDS if key in changes}
    if not requested:
        raise StoryValidationError("nothing_to_update")
    merged = {key: story.get(key) for key in EDITABLE_FIELDS}
    merged.update(requested)
    validated = validate_story_fields(merged)

    current_count = int(story.get("edit_count") or 0)
    values: Dict[str, Any] = {key: validated[key] for key in requested}
    values["edit_count"] = current_count + 1
    values["updated_at"] = _utcnow_iso()

    body_changed = "body" in values and values["body"] != (story.get("body") or "").strip()
    reason: Optional[str] = None
    analysis = None
    if body_changed:
        analysis = analysis_service.try_analyze(values["body"])
        values["literacy_score"] = analysis.score if analysis else None
        if story.get("status") == "published":
            status, reason = _moderation_decision(analysis)
            if reason == "low_literacy":
                reason = "edited_low_literacy"
            values["status"] = status

    rows = client.update(
        "stories",
        values,
        filters={
            "id": client.eq(story_id),
            "author_id": client.eq(author_id),
            "edit_count": client.eq(current_count),
        },
    )
    if not rows:
        raise StoryConflictError("edit_conflict")
    updated = rows[0]
    if body_changed:
        _replace_excerpts(story_id, values["body"], existing=True)
    if reason:
        moderation_service.enqueue(updated, reason, analysis.score if analysis else None)
    feed_service.invalidate_feed_cache()
    LOG.info("story edited id=%s edit_count=%s fields=%s", story_id, values["edit_count"], ",".join(requested))
    return {"story": updated, "edits_remaining": max(0, max_edits - values["edit_count"])}


def delete_story(viewer: Viewer, story_id: int) -> None:
    author_id = ensure_authenticated(viewer)
    story = _load_story(story_id, columns="id,author_id")
    if story.get("author_id") != author_id:
        raise PermissionError("not_owner")
    removed = client.delete(
        "stories",
        filters={"id": client.eq(story_id), "author_id": client.eq(author_id)},
    )
    if not removed:
        raise StoryNotFoundError("story_not_found")
    feed_service.invalidate_feed_cache()
    LOG.info("story deleted id=%s author_id=%s", story_id, author_id)


def _visible_to(story: Mapping[str, Any], viewer: Viewer) -> bool:
    if story.get("status") == "published":
        return True
    return viewer.is_admin or (viewer.author_id is not None and story.get("author_id") == viewer.author_id)


def get_story_by_slug(slug: str, viewer: Viewer) -> Dict[str, Any]:
    cleaned = (slug or "").strip()
    if not cleaned:
        raise StoryNotFoundError("story_not_found")
    rows = client.select(
        "stories",
        columns=_STORY_WITH_AUTHOR,
        filters={"slug": client.eq(cleaned)},
        limit=1,
    )
    if not rows or not _visible_to(rows[0], viewer):
        raise StoryNotFoundError("story_not_found")
    story = rows[0]
    if story.get("author_id") != viewer.author_id:
        age_gate.ensure_allowed(story.get("age_rating"), viewer.confirmed_age)
    return story


def get_published_story(story_id: int) -> Dict[str, Any]:
    """Published story by id; anything else reads as missing."""
    story = _load_story(story_id, columns="id,author_id,genre,status")
    if story.get("status") != "published":
        raise StoryNotFoundError("story_not_found")
    return story


def list_author_stories(author_id: int, viewer: Viewer) -> List[Dict[str, Any]]:
    filters = {"author_id": client.eq(author_id)}
    own = viewer.author_id == author_id
    if not own:
        filters["status"] = client.eq("published")
    rows = client.select("stories", columns=_STORY_COLUMNS, filters=filters, order="created_at.desc")
    if own:
        for row in rows:
            row["edits_remaining"] = edits_remaining(row)
        return rows
    return age_gate.filter_allowed(rows, viewer.confirmed_age)


__all__ = [
    "GENRES",
    "StoryValidationError",
    "StoryNotFoundError",
    "EditLimitReachedError",
    "StoryConflictError",
    "slugify",
    "split_excerpts",
    "validate_story_fields",
    "edits_remaining",
    "publish_story",
    "get_published_story",
    "edit_story",
    "delete_story",
    "get_story_by_slug",
    "list_author_stories",
]
