"""Blueprint registration.

Called from startup; every helper is idempotent so a second call leaves the
app untouched.
"""
from __future__ import annotations
from typing import Any

from .api import register_api
from .avatar import register_avatar
from .health import register_health
from .language_switch import register_language_switch
from .moderation import register_moderation
from .pages import register_pages


def register_all(app: Any) -> None:
    register_pages(app)
    register_api(app)
    register_avatar(app)
    register_moderation(app)
    register_health(app)
    register_language_switch(app)

__all__ = ["register_all"]
