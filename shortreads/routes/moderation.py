"""Moderation admin blueprint.

Routes:
    /admin/moderation/                      -> queue page
    /admin/moderation/api/queue             -> pending entries (JSON)
    /admin/moderation/api/<id>/approve      -> publish story
    /admin/moderation/api/<id>/reject       -> reject story

All routes enforce admin access via ensure_admin.
"""
from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, redirect, render_template, request

from shortreads.backend import BackendError
from shortreads.routes.errors import json_error
from shortreads.services import moderation_service
from shortreads.utils.identity import PermissionError, ensure_admin, get_current_viewer
from shortreads.utils.logging import get_logger

bp = Blueprint("moderation_admin", __name__, url_prefix="/admin/moderation", template_folder="../templates")
LOG = get_logger("routes.moderation")


def _ensure_admin(prefer_redirect: bool = False):
    try:
        ensure_admin()
    except PermissionError as exc:
        if prefer_redirect:
            return redirect("/")
        return json_error(str(exc), 403)
    return True


@bp.route("/", methods=["GET"])
def queue_page():
    auth = _ensure_admin(prefer_redirect=True)
    if auth is not True:
        return auth
    return render_template("moderation.html", viewer=get_current_viewer())


@bp.route("/api/queue", methods=["GET"])
def api_queue():
    auth = _ensure_admin()
    if auth is not True:
        return auth
    try:
        items = moderation_service.list_pending()
    except BackendError as exc:
        LOG.warning("moderation queue load failed code=%s", exc.code)
        return json_error(exc.code, 502)
    return jsonify({"items": items, "count": len(items)})


def _decide(entry_id: int, approve: bool):
    auth = _ensure_admin()
    if auth is not True:
        return auth
    payload = request.get_json(silent=True) or {}
    note = payload.get("note") if isinstance(payload.get("note"), str) else None
    try:
        if approve:
            result = moderation_service.approve(entry_id, note)
        else:
            result = moderation_service.reject(entry_id, note)
    except moderation_service.ModerationError as exc:
        code = str(exc)
        return json_error(code, 404 if code == "entry_not_found" else 409)
    except BackendError as exc:
        LOG.warning("moderation decision failed entry_id=%s code=%s", entry_id, exc.code)
        return json_error(exc.code, 502)
    return jsonify({"status": "ok", "result": result})


@bp.route("/api/<int:entry_id>/approve", methods=["POST"])
def api_approve(entry_id: int):
    return _decide(entry_id, approve=True)


@bp.route("/api/<int:entry_id>/reject", methods=["POST"])
def api_reject(entry_id: int):
    return _decide(entry_id, approve=False)


def register_moderation(app: Any) -> None:
    if getattr(app, "_shortreads_moderation_bp", None):
        return
    app.register_blueprint(bp)
    setattr(app, "_shortreads_moderation_bp", bp)
    LOG.debug("moderation blueprint registered")


__all__ = ["bp", "register_moderation"]
