"""Error code -> HTTP status/message mapping shared by the JSON blueprints."""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, jsonify
from flask_babel import lazy_gettext as _l

from shortreads.backend import BackendError, BackendUnavailableError
from shortreads.services.age_gate import AgeGateError
from shortreads.services.analysis_service import AnalysisError
from shortreads.services.authors_service import AuthorValidationError
from shortreads.services.moderation_service import ModerationError
from shortreads.services.preferences_service import PreferenceValidationError
from shortreads.services.reactions_service import ReactionValidationError
from shortreads.services.stories_service import (
    EditLimitReachedError,
    StoryConflictError,
    StoryNotFoundError,
    StoryValidationError,
)
from shortreads.services.telegram_auth import TelegramAuthError
from shortreads.utils.identity import PermissionError
from shortreads.utils.logging import get_logger

LOG = get_logger("routes.errors")

_ERROR_MESSAGES = {
    "login_required": _l("Please sign in first."),
    "not_owner": _l("Only the author can change this story."),
    "admin_required": _l("Administrator access required."),
    "title_required": _l("Title is required."),
    "title_too_long": _l("Title is too long."),
    "body_too_short": _l("The story is too short."),
    "body_too_long": _l("The story is too long."),
    "unsupported_genre": _l("Choose a genre from the list."),
    "invalid_age_rating": _l("Choose an age rating from the list."),
    "nothing_to_update": _l("Nothing to update."),
    "story_not_found": _l("Story not found."),
    "edit_limit_reached": _l("This story cannot be edited any more."),
    "edit_conflict": _l("The story changed meanwhile. Reload and try again."),
    "age_restricted": _l("This story is not available for your age."),
    "invalid_age": _l("Enter a valid age."),
    "unsupported_reaction": _l("Unknown reaction."),
    "text_required": _l("Text is required."),
    "text_too_long": _l("Text is too long."),
    "analysis_not_configured": _l("Text analysis is not configured."),
    "analysis_unreachable": _l("Text analysis is unavailable. Try again later."),
    "bot_token_missing": _l("Telegram login is not configured."),
    "hash_mismatch": _l("Telegram login could not be verified."),
    "login_expired": _l("Telegram login expired. Sign in again."),
    "entry_not_found": _l("Moderation entry not found."),
    "already_decided": _l("This entry was already decided."),
    "backend_not_configured": _l("Backend is not configured."),
    "backend_unreachable": _l("Server is unreachable. Try again later."),
    "http_error": _l("Server request failed. Try again later."),
    "display_name_required": _l("Display name is required."),
    "display_name_too_long": _l("Display name is too long."),
    "bio_too_long": _l("About text is too long."),
    "not_found": _l("Not found."),
    "invalid_json": _l("Invalid request payload."),
}

_STATUS_BY_CODE = {
    "login_required": 401,
    "not_owner": 403,
    "admin_required": 403,
    "age_restricted": 403,
    "story_not_found": 404,
    "entry_not_found": 404,
    "not_found": 404,
    "edit_limit_reached": 409,
    "edit_conflict": 409,
    "already_decided": 409,
    "bot_token_missing": 500,
    "analysis_not_configured": 503,
}

_DEFAULT_STATUS = (
    (BackendUnavailableError, 503),
    (BackendError, 502),
    (PermissionError, 403),
    (TelegramAuthError, 401),
    (AnalysisError, 502),
    (StoryNotFoundError, 404),
    (ModerationError, 400),
    (Exception, 400),
)

HANDLED_ERRORS: Tuple[type, ...] = (
    BackendError,
    PermissionError,
    TelegramAuthError,
    AnalysisError,
    AgeGateError,
    StoryValidationError,
    StoryNotFoundError,
    EditLimitReachedError,
    StoryConflictError,
    PreferenceValidationError,
    ReactionValidationError,
    AuthorValidationError,
    ModerationError,
)


def error_code(exc: BaseException) -> str:
    if isinstance(exc, BackendError):
        return exc.code
    return str(exc) or exc.__class__.__name__


def error_message(code: str) -> Optional[str]:
    message = _ERROR_MESSAGES.get(code)
    return str(message) if message is not None else None


def json_error(code: str, status: int = 400, *, details: Optional[Dict[str, Any]] = None):
    payload: Dict[str, Any] = {"error": code}
    message = error_message(code)
    if message:
        payload["message"] = message
    if details is not None:
        payload["details"] = details
    return jsonify(payload), status


def status_for(exc: BaseException) -> int:
    code = error_code(exc)
    if code in _STATUS_BY_CODE:
        return _STATUS_BY_CODE[code]
    if code in ("text_required", "text_too_long"):
        return 400
    for exc_type, status in _DEFAULT_STATUS:
        if isinstance(exc, exc_type):
            return status
    return 400  # pragma: no cover


def handle_service_error(exc: BaseException):
    status = status_for(exc)
    code = error_code(exc)
    if status >= 500:
        LOG.warning("request failed code=%s status=%s", code, status)
    return json_error(code, status)


def register_error_handlers(bp: Blueprint) -> None:
    for exc_type in HANDLED_ERRORS:
        bp.register_error_handler(exc_type, handle_service_error)


__all__ = [
    "HANDLED_ERRORS",
    "error_code",
    "error_message",
    "json_error",
    "status_for",
    "handle_service_error",
    "register_error_handlers",
]
