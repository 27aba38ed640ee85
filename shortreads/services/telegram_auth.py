"""Telegram Login Widget payload verification."""
from __future__ import annotations

import hashlib
import hmac
import time
from typing import Any, Dict, Mapping, Optional

from shortreads.utils.logging import get_logger

LOG = get_logger("telegram_auth")
DEFAULT_MAX_AGE = 86400


class TelegramAuthError(ValueError):
    """Raised when a login payload is missing fields, forged or stale."""


def data_check_string(payload: Mapping[str, Any]) -> str:
    """Sorted ``key=value`` lines of every field except ``hash``."""
    pairs = []
    for key in sorted(payload):
        if key == "hash":
            continue
        value = payload[key]
        if value is None:
            continue
        pairs.append(f"{key}={value}")
    return "\n".join(pairs)


def compute_hash(payload: Mapping[str, Any], bot_token: str) -> str:
    secret = hashlib.sha256(bot_token.encode("utf-8")).digest()
    return hmac.new(secret, data_check_string(payload).encode("utf-8"), hashlib.sha256).hexdigest()


def verify_login(
    payload: Mapping[str, Any],
    bot_token: Optional[str],
    *,
    max_age: int = DEFAULT_MAX_AGE,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """Validate the widget payload and return the cleaned identity fields."""
    if not bot_token:
        raise TelegramAuthError("bot_token_missing")
    provided = payload.get("hash")
    if not isinstance(provided, str) or not provided:
        raise TelegramAuthError("hash_missing")
    telegram_id = payload.get("id")
    if telegram_id in (None, ""):
        raise TelegramAuthError("id_missing")
    expected = compute_hash(payload, bot_token)
    if not hmac.compare_digest(expected, provided.lower()):
        LOG.warning("Rejected Telegram login with bad hash id=%s", telegram_id)
        raise TelegramAuthError("hash_mismatch")
    try:
        auth_date = int(payload.get("auth_date") or 0)
    except (TypeError, ValueError) as exc:
        raise TelegramAuthError("auth_date_invalid") from exc
    current = time.time() if now is None else now
    if max_age > 0 and current - auth_date > max_age:
        raise TelegramAuthError("login_expired")

    first = str(payload.get("first_name") or "").strip()
    last = str(payload.get("last_name") or "").strip()
    username = str(payload.get("username") or "").strip()
    display_name = " ".join(part for part in (first, last) if part) or username or f"reader{telegram_id}"
    return {
        "telegram_id": str(telegram_id),
        "display_name": display_name[:80],
        "username": username or None,
        "photo_url": payload.get("photo_url") or None,
    }


__all__ = [
    "TelegramAuthError",
    "data_check_string",
    "compute_hash",
    "verify_login",
]
