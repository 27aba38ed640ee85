"""HTTP layer: server-rendered pages, JSON API and admin moderation."""
from .inject import register_all

__all__ = ["register_all"]
