"""Per-viewer genre preference weights."""
from __future__ import annotations

from typing import Dict, Iterable, List

from shortreads.backend import client
from shortreads.utils.logging import get_logger

LOG = get_logger("preferences_service")

GENRES = (
    "drama",
    "romance",
    "fantasy",
    "sci-fi",
    "horror",
    "detective",
    "humor",
    "adventure",
    "poetry",
    "other",
)
MIN_WEIGHT = -10.0
MAX_WEIGHT = 50.0
EXPLICIT_WEIGHT = 5.0

READ_DELTA = 1.0
LIKE_DELTA = 2.0
DISLIKE_DELTA = -1.0


class PreferenceValidationError(ValueError):
    """Raised for unknown genres."""


def normalize_genre(raw: object) -> str:
    genre = str(raw or "").strip().lower()
    if genre not in GENRES:
        raise PreferenceValidationError("unsupported_genre")
    return genre


def clamp_weight(value: float) -> float:
    return max(MIN_WEIGHT, min(MAX_WEIGHT, float(value)))


def genre_weights(author_id: int) -> Dict[str, float]:
    rows = client.select(
        "preferences",
        columns="genre,weight",
        filters={"author_id": client.eq(author_id)},
    )
    weights: Dict[str, float] = {}
    for row in rows:
        genre = row.get("genre")
        if not isinstance(genre, str):
            continue
        try:
            weights[genre] = float(row.get("weight") or 0)
        except (TypeError, ValueError):
            continue
    return weights


def adjust(author_id: int, genre: str, delta: float) -> float:
    """Add ``delta`` to the viewer's weight for ``genre``; returns the new weight.

    Read-modify-write without locking: two concurrent likes can lose one
    increment, which only nudges the feed slightly.
    """
    key = normalize_genre(genre)
    current = genre_weights(author_id).get(key, 0.0)
    updated = clamp_weight(current + delta)
    client.upsert(
        "preferences",
        {"author_id": author_id, "genre": key, "weight": updated},
        on_conflict="author_id,genre",
    )
    LOG.debug("preference adjusted author_id=%s genre=%s weight=%s", author_id, key, updated)
    return updated


def set_preferences(author_id: int, genres: Iterable[object]) -> Dict[str, float]:
    """Explicit choice from the profile page: chosen genres get a fixed weight."""
    chosen: List[str] = []
    for raw in genres:
        genre = normalize_genre(raw)
        if genre not in chosen:
            chosen.append(genre)
    rows = [
        {"author_id": author_id, "genre": genre, "weight": EXPLICIT_WEIGHT if genre in chosen else 0.0}
        for genre in GENRES
    ]
    client.upsert("preferences", rows, on_conflict="author_id,genre")
    LOG.info("preferences replaced author_id=%s genres=%s", author_id, ",".join(chosen) or "-")
    return {row["genre"]: row["weight"] for row in rows}


__all__ = [
    "GENRES",
    "READ_DELTA",
    "LIKE_DELTA",
    "DISLIKE_DELTA",
    "PreferenceValidationError",
    "normalize_genre",
    "clamp_weight",
    "genre_weights",
    "adjust",
    "set_preferences",
]
