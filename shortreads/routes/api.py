"""JSON API used by the pages' inline scripts.

Routes (prefix /api):
    GET    /feed                      personalized feed
    GET    /me                        current viewer
    POST   /session                   Telegram login
    DELETE /session                   logout
    POST   /age                       confirm age (sets cookie)
    POST   /stories                   publish
    GET    /stories/<slug>            full story
    PATCH  /stories/<id>              edit (limited)
    DELETE /stories/<id>              delete
    POST   /stories/<id>/reaction     like/dislike toggle
    POST   /stories/<id>/read         reading history
    GET    /notifications             list + unread count
    POST   /notifications/read        mark all read
    GET    /preferences               genre weights
    PUT    /preferences               explicit genre choice
    PATCH  /profile                   display name / bio
    POST   /analyze                   literacy score preview
"""
from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, jsonify, make_response, request

from shortreads.services import (
    age_gate,
    analysis_service,
    authors_service,
    feed_service,
    history_service,
    notifications_service,
    preferences_service,
    reactions_service,
    session_service,
    stories_service,
)
from shortreads.services.age_token_service import AGE_COOKIE_NAME, AGE_TOKEN_TTL, encode_age_token
from shortreads.routes.errors import json_error, register_error_handlers
from shortreads.utils.identity import ensure_authenticated, get_current_viewer
from shortreads.utils.logging import get_logger

LOG = get_logger("routes.api")

bp = Blueprint("api", __name__, url_prefix="/api")
register_error_handlers(bp)


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


@bp.route("/feed", methods=["GET"])
def feed():
    viewer = get_current_viewer()
    limit = feed_service.clamp_limit(request.args.get("limit"))
    items = feed_service.load_feed(viewer, limit=limit)
    return jsonify({"items": items, "count": len(items), "viewer": viewer.to_payload()})


@bp.route("/me", methods=["GET"])
def me():
    return jsonify(get_current_viewer().to_payload())


@bp.route("/session", methods=["POST"])
def create_session():
    payload = _json_body() or request.form.to_dict()
    result = session_service.login(payload)
    return jsonify({"status": "ok", "author": result})


@bp.route("/session", methods=["DELETE"])
def delete_session():
    session_service.logout()
    return jsonify({"status": "ok"})


@bp.route("/age", methods=["POST"])
def confirm_age():
    payload = _json_body()
    age = age_gate.confirm_age(payload.get("age", request.values.get("age")))
    resp = make_response(jsonify({"status": "ok", "confirmed_age": age}))
    resp.set_cookie(
        AGE_COOKIE_NAME,
        encode_age_token(age),
        max_age=int(AGE_TOKEN_TTL.total_seconds()),
        httponly=True,
        samesite="Lax",
        secure=request.is_secure,
    )
    return resp


@bp.route("/stories", methods=["POST"])
def publish_story():
    result = stories_service.publish_story(get_current_viewer(), _json_body())
    return jsonify(result), 201


@bp.route("/stories/<string:slug>", methods=["GET"])
def get_story(slug: str):
    story = stories_service.get_story_by_slug(slug, get_current_viewer())
    return jsonify({"story": story})


@bp.route("/stories/<int:story_id>", methods=["PATCH"])
def edit_story(story_id: int):
    result = stories_service.edit_story(get_current_viewer(), story_id, _json_body())
    return jsonify(result)


@bp.route("/stories/<int:story_id>", methods=["DELETE"])
def delete_story(story_id: int):
    stories_service.delete_story(get_current_viewer(), story_id)
    return jsonify({"status": "deleted", "story_id": story_id})


@bp.route("/stories/<int:story_id>/reaction", methods=["POST"])
def react(story_id: int):
    payload = _json_body()
    result = reactions_service.react(get_current_viewer(), story_id, payload.get("kind"))
    return jsonify(result)


@bp.route("/stories/<int:story_id>/read", methods=["POST"])
def mark_read(story_id: int):
    author_id = ensure_authenticated(get_current_viewer())
    story = stories_service.get_published_story(story_id)
    first = history_service.mark_read(author_id, story_id, genre=story.get("genre"))
    return jsonify({"status": "ok", "first_read": first})


@bp.route("/notifications", methods=["GET"])
def notifications():
    author_id = ensure_authenticated(get_current_viewer())
    items = notifications_service.list_for(author_id)
    unread = sum(1 for item in items if not item.get("is_read"))
    return jsonify({"items": items, "unread": unread})


@bp.route("/notifications/read", methods=["POST"])
def notifications_read():
    author_id = ensure_authenticated(get_current_viewer())
    updated = notifications_service.mark_all_read(author_id)
    return jsonify({"status": "ok", "updated": updated})


@bp.route("/preferences", methods=["GET"])
def get_preferences():
    author_id = ensure_authenticated(get_current_viewer())
    return jsonify({
        "weights": preferences_service.genre_weights(author_id),
        "genres": list(preferences_service.GENRES),
    })


@bp.route("/preferences", methods=["PUT"])
def put_preferences():
    author_id = ensure_authenticated(get_current_viewer())
    genres = _json_body().get("genres")
    if not isinstance(genres, list):
        return json_error("invalid_json", 400)
    weights = preferences_service.set_preferences(author_id, genres)
    return jsonify({"status": "ok", "weights": weights})


@bp.route("/profile", methods=["PATCH"])
def update_profile():
    author_id = ensure_authenticated(get_current_viewer())
    payload = _json_body()
    display_name = payload.get("display_name")
    bio = payload.get("bio")
    author = authors_service.update_profile(
        author_id,
        display_name=display_name if isinstance(display_name, str) else None,
        bio=bio if isinstance(bio, str) else None,
    )
    return jsonify({"status": "ok", "author": author})


@bp.route("/analyze", methods=["POST"])
def analyze():
    ensure_authenticated(get_current_viewer())
    text = _json_body().get("text")
    result = analysis_service.analyze_text(text if isinstance(text, str) else "")
    return jsonify(result.to_payload())


def register_api(app: Any) -> None:
    if getattr(app, "_shortreads_api_bp", None):
        return
    app.register_blueprint(bp)
    setattr(app, "_shortreads_api_bp", bp)
    LOG.debug("api blueprint registered")


__all__ = ["bp", "register_api"]
