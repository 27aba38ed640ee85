"""Flask-Babel wiring: locale selection and translation directories."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from flask import has_request_context, request, session
from flask_babel import Babel

from shortreads.utils.logging import get_logger

LOG = get_logger("i18n")

SESSION_LOCALE_KEY = "sr_preferred_locale"
SUPPORTED_LANGUAGES = ("en", "ru")
DEFAULT_LANGUAGE = "en"

_TRANSLATIONS_DIR = Path(__file__).resolve().parents[1] / "translations"


def normalize_language_choice(raw: Optional[str]) -> Optional[str]:
    """Normalize a user-provided language code to a supported value."""
    if not raw or not isinstance(raw, str):
        return None
    code = raw.strip().lower().replace("_", "-").split("-")[0]
    return code if code in SUPPORTED_LANGUAGES else None


def select_locale() -> str:
    if not has_request_context():
        return DEFAULT_LANGUAGE
    preferred = normalize_language_choice(session.get(SESSION_LOCALE_KEY))
    if preferred:
        return preferred
    return request.accept_languages.best_match(SUPPORTED_LANGUAGES) or DEFAULT_LANGUAGE


def configure_translations(app) -> None:
    """Initialize Babel on the app once; later calls are no-ops."""
    if "babel" in getattr(app, "extensions", {}):
        return
    if _TRANSLATIONS_DIR.is_dir():
        app.config.setdefault("BABEL_TRANSLATION_DIRECTORIES", str(_TRANSLATIONS_DIR))
    else:
        LOG.debug("Translation directory missing; using source strings: %s", _TRANSLATIONS_DIR)
    app.config.setdefault("BABEL_DEFAULT_LOCALE", DEFAULT_LANGUAGE)
    Babel(app, locale_selector=select_locale)
    LOG.debug("Babel initialized (languages=%s)", ",".join(SUPPORTED_LANGUAGES))


__all__ = [
    "SESSION_LOCALE_KEY",
    "SUPPORTED_LANGUAGES",
    "normalize_language_choice",
    "select_locale",
    "configure_translations",
]
