"""Author avatar upload to backend object storage.

Runs with the service key (storage writes bypass row-level security), so the
caller must prove ownership: the signed-in viewer must be the author (or an
admin), the author row must exist and, when a Telegram id is supplied, it has
to match the stored one.

Path layout: ``avatars/{author_id}/avatar.{ext}`` (overwritten on re-upload);
the public URL carries a ``?t=<ms>`` cache buster.
"""
from __future__ import annotations

import time
from typing import Any, Optional

from werkzeug.datastructures import FileStorage

from shortreads.backend import BackendError, client
from shortreads.services import authors_service
from shortreads.utils.identity import Viewer, normalize_id
from shortreads.utils.logging import get_logger

LOG = get_logger("avatar_service")

AVATAR_BUCKET = "avatars"
ALLOWED_EXT = ("jpg", "jpeg", "png", "webp")
DEFAULT_EXT = "jpg"
DEFAULT_CONTENT_TYPE = "image/jpeg"
MAX_AVATAR_BYTES = 3 * 1024 * 1024


class AvatarUploadError(RuntimeError):
    """Upload failure carrying the HTTP status the route should answer with."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status = status


def avatar_extension(filename: Optional[str]) -> str:
    name = filename or "avatar.jpg"
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return ext if ext in ALLOWED_EXT else DEFAULT_EXT


def avatar_path(author_id: int, ext: str) -> str:
    return f"{author_id}/avatar.{ext}"


def _details_text(exc: BackendError) -> str:
    details = exc.details
    if isinstance(details, dict):
        return str(details.get("message") or details.get("error") or details)
    return str(details if details is not None else exc.code)


def upload_avatar(
    file: Optional[FileStorage],
    author_id_raw: Any,
    telegram_id_raw: Any = None,
    *,
    viewer: Viewer,
) -> str:
    """Store the avatar and point ``authors.avatar_url`` at it; returns the URL."""
    author_id = normalize_id(author_id_raw)
    if file is None or author_id is None:
        raise AvatarUploadError("Missing file or author_id", 400)
    if not viewer.is_authenticated:
        raise AvatarUploadError("Unauthorized", 401)
    if not viewer.is_admin and viewer.author_id != author_id:
        LOG.warning("avatar upload for author_id=%s refused for viewer=%s", author_id, viewer.author_id)
        raise AvatarUploadError("Unauthorized", 403)
    if not client.is_configured(service=True):
        raise AvatarUploadError("Server configuration error", 500)

    try:
        authors = client.select(
            "authors",
            columns="id,telegram_id",
            filters={"id": client.eq(author_id)},
            service=True,
        )
    except BackendError as exc:
        LOG.warning("avatar author lookup failed author_id=%s error=%s", author_id, exc.code)
        raise AvatarUploadError(_details_text(exc), 500) from exc
    if not authors:
        raise AvatarUploadError("Author not found", 404)
    telegram_id = str(telegram_id_raw).strip() if telegram_id_raw not in (None, "") else None
    if telegram_id and str(authors[0].get("telegram_id") or "") != telegram_id:
        raise AvatarUploadError("Unauthorized", 403)

    data = file.read(MAX_AVATAR_BYTES + 1)
    if not data:
        raise AvatarUploadError("Missing file or author_id", 400)
    if len(data) > MAX_AVATAR_BYTES:
        raise AvatarUploadError("File too large", 413)

    ext = avatar_extension(file.filename)
    path = avatar_path(author_id, ext)
    try:
        client.upload_object(AVATAR_BUCKET, path, data, file.mimetype or DEFAULT_CONTENT_TYPE, upsert=True)
    except BackendError as exc:
        LOG.error("Upload error: %s", _details_text(exc))
        raise AvatarUploadError("Upload failed: " + _details_text(exc), 500) from exc

    avatar_url = f"{client.public_object_url(AVATAR_BUCKET, path)}?t={int(time.time() * 1000)}"
    try:
        client.update(
            "authors",
            {"avatar_url": avatar_url},
            filters={"id": client.eq(author_id)},
            service=True,
        )
    except BackendError as exc:
        raise AvatarUploadError("Failed to update profile: " + _details_text(exc), 500) from exc
    authors_service.invalidate(author_id)
    LOG.info("avatar uploaded author_id=%s path=%s bytes=%s", author_id, path, len(data))
    return avatar_url


__all__ = [
    "AVATAR_BUCKET",
    "ALLOWED_EXT",
    "MAX_AVATAR_BYTES",
    "AvatarUploadError",
    "avatar_extension",
    "avatar_path",
    "upload_avatar",
]
