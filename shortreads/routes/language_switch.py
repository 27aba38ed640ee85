"""Language switch endpoint for signed-in readers and anonymous visitors."""
from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request, session

from shortreads.i18n import SESSION_LOCALE_KEY, SUPPORTED_LANGUAGES, normalize_language_choice
from shortreads.utils.logging import get_logger

LOG = get_logger("routes.language_switch")

bp = Blueprint("language_switch", __name__)


@bp.route("/language/switch", methods=["POST", "GET"])
def switch_language():
    payload = request.get_json(silent=True) or {}
    raw_lang = payload.get("language") or request.values.get("language") or request.values.get("lang")
    normalized = normalize_language_choice(raw_lang)
    if not normalized:
        return jsonify({"error": "unsupported_language", "supported": list(SUPPORTED_LANGUAGES)}), 400

    session[SESSION_LOCALE_KEY] = normalized
    session.modified = True
    LOG.debug("language switched to %s", normalized)

    target = request.values.get("next") or request.referrer or "/"
    return jsonify({"status": "ok", "language": normalized, "redirect": target})


def register_language_switch(app: Any) -> None:
    if getattr(app, "_shortreads_language_switch_bp", None):
        return
    app.register_blueprint(bp)
    setattr(app, "_shortreads_language_switch_bp", bp)
    LOG.debug("language switch blueprint registered")


__all__ = ["bp", "register_language_switch"]
