"""Application initialization / wiring.

Orchestrates: Flask app creation, cache DB init, Babel, route registration
and template globals.
"""
from __future__ import annotations

import secrets
from typing import Any, Dict, Mapping, Optional

from flask import Flask

from shortreads import config
from shortreads.db import init_engine_once
from shortreads.i18n import SUPPORTED_LANGUAGES, configure_translations, select_locale
from shortreads.routes.inject import register_all as register_routes
from shortreads.services import cache_service
from shortreads.utils.logging import get_logger, refresh_level

LOG = get_logger("startup")


def _apply_secret_key(app: Flask) -> None:
    if app.config.get("SECRET_KEY"):
        return
    key = config.secret_key()
    if key:
        app.config["SECRET_KEY"] = key
        return
    app.config["SECRET_KEY"] = secrets.token_hex(32)
    LOG.warning("SECRET_KEY not set; generated an ephemeral key (sessions and age cookies reset on restart)")


def _template_globals() -> Dict[str, Any]:
    meta = config.metadata()
    return {
        "app_name": meta["name"],
        "app_version": meta["version"],
        "telegram_bot_username": config.telegram_bot_username(),
        "max_story_edits": config.max_story_edits(),
        "html_lang": select_locale(),
        "supported_languages": SUPPORTED_LANGUAGES,
    }


def init_app(app: Flask) -> None:
    refresh_level()
    LOG.debug("init_app starting")
    _apply_secret_key(app)
    init_engine_once()
    LOG.debug("Cache DB engine initialized")
    cache_service.purge_expired()
    configure_translations(app)
    register_routes(app)
    LOG.debug("Routes registered")
    if not getattr(app, "_shortreads_context_processor", False):
        app.context_processor(_template_globals)
        setattr(app, "_shortreads_context_processor", True)
    LOG.info("App startup wiring complete config=%s", config.summarize_runtime_config())


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask("shortreads")
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        JSON_SORT_KEYS=False,
    )
    if config_overrides:
        app.config.update(dict(config_overrides))
    init_app(app)
    return app


__all__ = ["create_app", "init_app"]
