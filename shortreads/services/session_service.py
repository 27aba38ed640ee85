"""Login/logout glue between Telegram verification and the Flask session."""
from __future__ import annotations

from typing import Any, Dict, Mapping

from shortreads import config
from shortreads.services import authors_service, telegram_auth
from shortreads.utils.identity import forget_author, is_admin_telegram_id, remember_author
from shortreads.utils.logging import get_logger

LOG = get_logger("session_service")


def login(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Verify the widget payload, resolve the author row and start a session."""
    identity = telegram_auth.verify_login(payload, config.telegram_bot_token())
    author = authors_service.find_or_create(identity)
    remember_author(author)
    LOG.info("login author_id=%s telegram_id=%s", author.get("id"), identity["telegram_id"])
    return {
        "author_id": author.get("id"),
        "display_name": author.get("display_name"),
        "avatar_url": author.get("avatar_url"),
        "is_admin": is_admin_telegram_id(identity["telegram_id"]),
    }


def logout() -> None:
    forget_author()


__all__ = ["login", "logout"]
