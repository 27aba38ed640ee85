"""Utility helpers (identity, logging)."""
from .identity import (
    ANONYMOUS,
    PermissionError,
    Viewer,
    ensure_admin,
    ensure_authenticated,
    get_current_viewer,
    normalize_id,
)

__all__ = [
    "ANONYMOUS",
    "PermissionError",
    "Viewer",
    "ensure_admin",
    "ensure_authenticated",
    "get_current_viewer",
    "normalize_id",
]
