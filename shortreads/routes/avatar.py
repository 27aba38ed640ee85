"""Avatar upload endpoint (multipart, CORS-enabled).

POST    /api/upload-avatar   form fields: file, author_id, telegram_id (optional)
OPTIONS /api/upload-avatar   CORS preflight
"""
from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, make_response, request

from shortreads.services import avatar_service
from shortreads.services.avatar_service import AvatarUploadError
from shortreads.utils.identity import get_current_viewer
from shortreads.utils.logging import get_logger

LOG = get_logger("routes.avatar")

bp = Blueprint("avatar", __name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _cors_json(payload: dict, status: int):
    resp = jsonify(payload)
    resp.status_code = status
    resp.headers.update(CORS_HEADERS)
    return resp


@bp.route("/api/upload-avatar", methods=["POST", "OPTIONS"])
def upload_avatar():
    if request.method == "OPTIONS":
        resp = make_response("", 200)
        resp.headers.update(CORS_HEADERS)
        return resp
    try:
        avatar_url = avatar_service.upload_avatar(
            request.files.get("file"),
            request.form.get("author_id"),
            request.form.get("telegram_id"),
            viewer=get_current_viewer(),
        )
    except AvatarUploadError as exc:
        return _cors_json({"error": exc.message}, exc.status)
    except Exception as exc:
        LOG.exception("Avatar upload error")
        return _cors_json({"error": str(exc)}, 500)
    return _cors_json({"success": True, "avatar_url": avatar_url}, 200)


def register_avatar(app: Any) -> None:
    if getattr(app, "_shortreads_avatar_bp", None):
        return
    app.register_blueprint(bp)
    setattr(app, "_shortreads_avatar_bp", bp)
    LOG.debug("avatar blueprint registered")


__all__ = ["bp", "register_avatar", "CORS_HEADERS"]
