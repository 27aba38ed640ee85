"""Encrypted age-confirmation cookie tokens.

The confirmed age outlives the login session (readers confirm once per
device), so it travels in its own Fernet token keyed from ``SECRET_KEY``.
"""
from __future__ import annotations

import base64
import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app

from shortreads.services.age_gate import AgeGateError, confirm_age
from shortreads.utils.logging import get_logger

LOG = get_logger("age_token_service")
AGE_COOKIE_NAME = "sr_age"
AGE_TOKEN_TTL = timedelta(days=365)


class TokenError(RuntimeError):
    """Base error for age token failures."""


class SecretKeyUnavailableError(TokenError):
    """Raised when the Flask SECRET_KEY is missing."""


class TokenDecodeError(TokenError):
    """Raised when a provided token cannot be decoded."""


class TokenExpiredError(TokenError):
    """Raised when a token exceeded its allowed lifetime."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def _parse_timestamp(raw: str) -> datetime:
    candidate = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise TokenDecodeError("invalid_timestamp") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _derive_fernet_key(secret_value: Any) -> bytes:
    if secret_value is None:
        raise SecretKeyUnavailableError("secret_key_missing")
    if isinstance(secret_value, bytes):
        secret_bytes = secret_value
    else:
        secret_bytes = str(secret_value).encode("utf-8")
    digest = hashlib.sha256(secret_bytes).digest()
    return base64.urlsafe_b64encode(digest)


def _fernet() -> Fernet:
    secret = current_app.config.get("SECRET_KEY")
    return Fernet(_derive_fernet_key(secret))


def encode_age_token(age: Any, *, issued_at: Optional[datetime] = None) -> str:
    try:
        value = confirm_age(age)
    except AgeGateError as exc:
        raise TokenError(str(exc)) from exc
    document = {
        "age": value,
        "issued_at": _format_timestamp(issued_at or _utcnow()),
    }
    encoded = _fernet().encrypt(json.dumps(document, sort_keys=True, separators=(",", ":")).encode("utf-8"))
    return encoded.decode("utf-8")


def decode_age_token(token: str) -> int:
    """Return the confirmed age stored in ``token`` enforcing the TTL."""
    if not token or not isinstance(token, str):
        raise TokenDecodeError("token_required")
    try:
        decrypted = _fernet().decrypt(token.encode("utf-8"))
    except InvalidToken as exc:
        raise TokenDecodeError("invalid_token") from exc
    try:
        payload = json.loads(decrypted.decode("utf-8"))
    except ValueError as exc:
        raise TokenDecodeError("invalid_payload") from exc
    if not isinstance(payload, dict):
        raise TokenDecodeError("invalid_payload")
    issued_raw = payload.get("issued_at")
    if not isinstance(issued_raw, str):
        raise TokenDecodeError("issued_at_missing")
    if _utcnow() - _parse_timestamp(issued_raw) > AGE_TOKEN_TTL:
        raise TokenExpiredError("age_token_expired")
    try:
        return confirm_age(payload.get("age"))
    except AgeGateError as exc:
        raise TokenDecodeError("age_invalid") from exc


def read_confirmed_age(token: Optional[str]) -> Optional[int]:
    """Lenient variant for request handling: bad tokens mean "not confirmed"."""
    if not token:
        return None
    try:
        return decode_age_token(token)
    except TokenError as exc:
        LOG.debug("Ignoring age token: %s", exc)
        return None


__all__ = [
    "AGE_COOKIE_NAME",
    "AGE_TOKEN_TTL",
    "TokenError",
    "SecretKeyUnavailableError",
    "TokenDecodeError",
    "TokenExpiredError",
    "encode_age_token",
    "decode_age_token",
    "read_confirmed_age",
]
