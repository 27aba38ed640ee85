"""Application configuration accessors.

Centralizes environment variable parsing & defaults. Callers read values
through these functions (never ``os.environ`` directly) so tests can use
``monkeypatch.setenv``.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import FrozenSet, Optional

APP_NAME = "shortreads"
APP_VERSION = "0.4.0"
APP_DESCRIPTION = "Short story feed, reader and publishing app"

DEFAULT_CACHE_DB_PATH = "shortreads_cache.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_FEED_CACHE_TTL = 300
DEFAULT_MAX_STORY_EDITS = 3
DEFAULT_MODERATION_THRESHOLD = 4.0
DEFAULT_REQUEST_TIMEOUT = 10
DEFAULT_CACHE_RETENTION_DAYS = 30
_TRUE = {"1", "true", "yes", "on"}

# The logging helper depends on this module, so numeric parse warnings go
# through the stdlib logger directly.
_LOG = logging.getLogger("shortreads.config")


def _raw_env(name: str, default: str | None = None) -> str | None:
    val = os.getenv(name)
    return val if val is not None else default


def _clean_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def env_bool(name: str, default: bool = False) -> bool:
    raw = _raw_env(name, str(default).lower())
    if raw is None:
        return default
    return raw.lower() in _TRUE


def env_int(name: str, default: int) -> int:
    raw = _clean_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        _LOG.warning("Invalid integer for %s=%r, using default %s", name, raw, default)
        return default


def env_float(name: str, default: float) -> float:
    raw = _clean_env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        _LOG.warning("Invalid number for %s=%r, using default %s", name, raw, default)
        return default


def get_cache_db_path() -> str:
    raw = _raw_env("SHORTREADS_CACHE_DB_PATH", DEFAULT_CACHE_DB_PATH)
    if raw and raw != ":memory:" and not os.path.isabs(raw):
        data_root = os.getenv("SHORTREADS_DATA_DIR")
        if data_root:
            return os.path.join(data_root, raw)
    return raw  # type: ignore[return-value]


def log_level_name() -> str:
    return _raw_env("SHORTREADS_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()  # type: ignore[union-attr]


@lru_cache(maxsize=1)
def metadata() -> dict:
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "description": APP_DESCRIPTION,
    }


def backend_url() -> Optional[str]:
    """Base URL of the hosted backend project, without trailing slash."""
    value = _clean_env("SHORTREADS_BACKEND_URL")
    return value.rstrip("/") if value else None


def backend_anon_key() -> Optional[str]:
    """Public (row-level-security bound) key used for regular reads/writes."""
    return _clean_env("SHORTREADS_BACKEND_ANON_KEY")


def backend_service_key() -> Optional[str]:
    """Privileged key; only server-side flows (avatar upload, moderation) use it."""
    return _clean_env("SHORTREADS_BACKEND_SERVICE_KEY")


def analysis_url() -> Optional[str]:
    return _clean_env("SHORTREADS_ANALYSIS_URL")


def analysis_api_key() -> Optional[str]:
    return _clean_env("SHORTREADS_ANALYSIS_API_KEY")


def request_timeout() -> int:
    return max(1, env_int("SHORTREADS_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT))


def feed_cache_ttl() -> int:
    """Seconds a cached feed payload stays fresh. 0 disables the cache."""
    return env_int("SHORTREADS_FEED_CACHE_TTL", DEFAULT_FEED_CACHE_TTL)


def cache_retention_days() -> int:
    """Days a local cache row (feed payload, analysis result) is kept. 0 keeps rows forever."""
    return max(0, env_int("SHORTREADS_CACHE_RETENTION_DAYS", DEFAULT_CACHE_RETENTION_DAYS))


def max_story_edits() -> int:
    return max(0, env_int("SHORTREADS_MAX_STORY_EDITS", DEFAULT_MAX_STORY_EDITS))


def moderation_threshold() -> float:
    """Literacy score below which new stories wait for a moderator."""
    return env_float("SHORTREADS_MODERATION_THRESHOLD", DEFAULT_MODERATION_THRESHOLD)


def telegram_bot_token() -> Optional[str]:
    return _clean_env("SHORTREADS_TELEGRAM_BOT_TOKEN")


def telegram_bot_username() -> Optional[str]:
    """Bot username rendered into the Telegram Login Widget (without @)."""
    raw = _clean_env("SHORTREADS_TELEGRAM_BOT_USERNAME")
    return raw.lstrip("@") if raw else None


def admin_telegram_ids() -> FrozenSet[str]:
    """Telegram ids allowed to moderate.

    Environment Variable: SHORTREADS_ADMIN_TELEGRAM_IDS (comma separated)
    """
    raw = _clean_env("SHORTREADS_ADMIN_TELEGRAM_IDS") or ""
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def secret_key() -> Optional[str]:
    return _clean_env("SECRET_KEY")


def summarize_runtime_config() -> dict:
    return {
        "cache_db_path": get_cache_db_path(),
        "log_level": log_level_name(),
        "backend_configured": bool(backend_url() and backend_anon_key()),
        "analysis_configured": bool(analysis_url()),
        "feed_cache_ttl": feed_cache_ttl(),
        "cache_retention_days": cache_retention_days(),
        "max_story_edits": max_story_edits(),
    }


__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "APP_DESCRIPTION",
    "env_bool",
    "env_int",
    "env_float",
    "get_cache_db_path",
    "log_level_name",
    "metadata",
    "backend_url",
    "backend_anon_key",
    "backend_service_key",
    "analysis_url",
    "analysis_api_key",
    "request_timeout",
    "feed_cache_ttl",
    "cache_retention_days",
    "max_story_edits",
    "moderation_threshold",
    "telegram_bot_token",
    "telegram_bot_username",
    "admin_telegram_ids",
    "secret_key",
    "summarize_runtime_config",
]
