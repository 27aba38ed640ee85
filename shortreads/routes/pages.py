"""Server-rendered pages.

    /                       feed
    /read?s=<slug>          full story
    /s/<slug>               short link -> /read?s=<slug>
    /write[?s=<slug>]       publish / edit form
    /profile/<author_id>    author page
    /manifest.webmanifest   PWA manifest

Pages query the backend while rendering; a failing query becomes an inline
error block and the reader retries by reloading.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from flask import Blueprint, jsonify, redirect, render_template, request, url_for

from shortreads import config
from shortreads.backend import BackendError
from shortreads.routes.errors import error_message
from shortreads.services import (
    age_gate,
    authors_service,
    feed_service,
    preferences_service,
    stories_service,
)
from shortreads.services.stories_service import StoryNotFoundError
from shortreads.utils.identity import get_current_viewer
from shortreads.utils.logging import get_logger

LOG = get_logger("routes.pages")

bp = Blueprint("pages", __name__, template_folder="../templates")


def _backend_error_context(exc: BackendError) -> Dict[str, Any]:
    LOG.warning("page backend error path=%s code=%s", request.path, exc.code)
    return {"error": error_message(exc.code) or error_message("http_error"), "error_code": exc.code}


@bp.route("/", methods=["GET"])
def feed_page():
    viewer = get_current_viewer()
    ctx: Dict[str, Any] = {"viewer": viewer, "items": [], "error": None}
    try:
        ctx["items"] = feed_service.load_feed(viewer, limit=feed_service.DEFAULT_FEED_LIMIT)
    except BackendError as exc:
        ctx.update(_backend_error_context(exc))
    return render_template("feed.html", **ctx)


@bp.route("/read", methods=["GET"])
def read_page():
    viewer = get_current_viewer()
    slug = (request.args.get("s") or "").strip()
    if not slug:
        return redirect(url_for("pages.feed_page"))
    try:
        story = stories_service.get_story_by_slug(slug, viewer)
    except StoryNotFoundError:
        return render_template("error.html", viewer=viewer, error=error_message("story_not_found")), 404
    except age_gate.AgeGateError:
        return render_template(
            "age_gate.html",
            viewer=viewer,
            slug=slug,
            error=error_message("age_restricted"),
        ), 403
    except BackendError as exc:
        return render_template("error.html", viewer=viewer, **_backend_error_context(exc)), 502
    return render_template(
        "read.html",
        viewer=viewer,
        story=story,
        paragraphs=[p for p in (story.get("body") or "").split("\n") if p.strip()],
    )


@bp.route("/s/", methods=["GET"])
@bp.route("/s/<path:slug>", methods=["GET"])
def short_link(slug: Optional[str] = None):
    cleaned = (slug or "").strip("/").split("/")[0]
    if not cleaned:
        return redirect("/", 302)
    return redirect("/read?s=" + quote(cleaned, safe=""), 302)


@bp.route("/write", methods=["GET"])
def write_page():
    viewer = get_current_viewer()
    story: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    slug = (request.args.get("s") or "").strip()
    if slug and viewer.is_authenticated:
        try:
            candidate = stories_service.get_story_by_slug(slug, viewer)
            if candidate.get("author_id") == viewer.author_id:
                story = candidate
                story["edits_remaining"] = stories_service.edits_remaining(candidate)
            else:
                error = error_message("not_owner")
        except StoryNotFoundError:
            error = error_message("story_not_found")
        except BackendError as exc:
            error = _backend_error_context(exc)["error"]
    return render_template(
        "write.html",
        viewer=viewer,
        story=story,
        error=error,
        genres=preferences_service.GENRES,
        age_ratings=age_gate.AGE_RATINGS,
        max_edits=config.max_story_edits(),
    )


@bp.route("/profile/<int:author_id>", methods=["GET"])
def profile_page(author_id: int):
    viewer = get_current_viewer()
    stories: List[Dict[str, Any]] = []
    try:
        author = authors_service.get_author(author_id)
        if author is None:
            return render_template("error.html", viewer=viewer, error=error_message("story_not_found")), 404
        stories = stories_service.list_author_stories(author_id, viewer)
    except BackendError as exc:
        return render_template("error.html", viewer=viewer, **_backend_error_context(exc)), 502
    return render_template(
        "profile.html",
        viewer=viewer,
        author=author,
        stories=stories,
        own=viewer.author_id == author_id,
        genres=preferences_service.GENRES,
    )


@bp.route("/manifest.webmanifest", methods=["GET"])
def manifest():
    meta = config.metadata()
    resp = jsonify({
        "name": meta["name"],
        "short_name": meta["name"],
        "description": meta["description"],
        "start_url": "/",
        "display": "standalone",
        "background_color": "#fbf8f3",
        "theme_color": "#2d2a26",
        "icons": [],
    })
    resp.mimetype = "application/manifest+json"
    return resp


def register_pages(app: Any) -> None:
    if getattr(app, "_shortreads_pages_bp", None):
        return
    app.register_blueprint(bp)
    setattr(app, "_shortreads_pages_bp", bp)
    LOG.debug("pages blueprint registered")


__all__ = ["bp", "register_pages"]
