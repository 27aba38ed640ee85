"""Viewer identity & permission helpers.

The viewer is whoever holds the current Flask session. A logged-in viewer
is an ``authors`` row (readers and writers share the table); anonymous
viewers can still read the feed. The confirmed age comes from its own cookie.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from flask import has_request_context, request, session

from shortreads import config as app_config
from shortreads.services.age_token_service import AGE_COOKIE_NAME, read_confirmed_age

SESSION_AUTHOR_ID = "author_id"
SESSION_TELEGRAM_ID = "telegram_id"
SESSION_DISPLAY_NAME = "display_name"


@dataclass(frozen=True)
class Viewer:
    author_id: Optional[int] = None
    telegram_id: Optional[str] = None
    display_name: Optional[str] = None
    is_admin: bool = False
    confirmed_age: Optional[int] = None

    @property
    def is_authenticated(self) -> bool:
        return self.author_id is not None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "author_id": self.author_id,
            "display_name": self.display_name,
            "authenticated": self.is_authenticated,
            "is_admin": self.is_admin,
            "confirmed_age": self.confirmed_age,
        }


ANONYMOUS = Viewer()


def normalize_id(raw: Any) -> Optional[int]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def is_admin_telegram_id(telegram_id: Optional[str]) -> bool:
    if not telegram_id:
        return False
    return str(telegram_id) in app_config.admin_telegram_ids()


def get_current_viewer() -> Viewer:
    if not has_request_context():
        return ANONYMOUS
    telegram_id = session.get(SESSION_TELEGRAM_ID)
    telegram_id = str(telegram_id) if telegram_id else None
    return Viewer(
        author_id=normalize_id(session.get(SESSION_AUTHOR_ID)),
        telegram_id=telegram_id,
        display_name=session.get(SESSION_DISPLAY_NAME),
        is_admin=is_admin_telegram_id(telegram_id),
        confirmed_age=read_confirmed_age(request.cookies.get(AGE_COOKIE_NAME)),
    )


def remember_author(author: Dict[str, Any]) -> None:
    session[SESSION_AUTHOR_ID] = author.get("id")
    session[SESSION_TELEGRAM_ID] = str(author.get("telegram_id") or "") or None
    session[SESSION_DISPLAY_NAME] = author.get("display_name")
    session.modified = True


def forget_author() -> None:
    for key in (SESSION_AUTHOR_ID, SESSION_TELEGRAM_ID, SESSION_DISPLAY_NAME):
        session.pop(key, None)
    session.modified = True


class PermissionError(Exception):
    pass


def ensure_authenticated(viewer: Viewer) -> int:
    if viewer.author_id is None:
        raise PermissionError("login_required")
    return viewer.author_id


def ensure_admin(viewer: Optional[Viewer] = None) -> None:
    current = viewer or get_current_viewer()
    if not current.is_admin:
        raise PermissionError("admin_required")


__all__ = [
    "SESSION_AUTHOR_ID",
    "SESSION_TELEGRAM_ID",
    "SESSION_DISPLAY_NAME",
    "Viewer",
    "ANONYMOUS",
    "normalize_id",
    "is_admin_telegram_id",
    "get_current_viewer",
    "remember_author",
    "forget_author",
    "PermissionError",
    "ensure_authenticated",
    "ensure_admin",
]
