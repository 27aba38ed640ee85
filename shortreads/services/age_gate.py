"""Age rating checks for stories shown to a viewer."""
from __future__ import annotations

import re
from typing import Any, Callable, Iterable, List, Optional, TypeVar

AGE_RATINGS = ("0+", "6+", "12+", "16+", "18+")
UNCONFIRMED_MAX_AGE = 16
MAX_CONFIRMABLE_AGE = 120
_FAIL_CLOSED_AGE = 18
_RATING_RE = re.compile(r"^\s*(\d{1,2})\s*\+?\s*$")

T = TypeVar("T")


class AgeGateError(ValueError):
    """Raised for invalid ages or content the viewer may not open."""


def required_age(rating: Any) -> int:
    """Minimum viewer age for ``rating``.

    Missing ratings mean no restriction; anything unparseable is treated as
    adult content.
    """
    if rating is None:
        return 0
    if isinstance(rating, bool):
        return _FAIL_CLOSED_AGE
    if isinstance(rating, int):
        return max(0, rating)
    text = str(rating)
    if not text.strip():
        return 0
    match = _RATING_RE.match(text)
    if not match:
        return _FAIL_CLOSED_AGE
    return int(match.group(1))


def is_allowed(rating: Any, confirmed_age: Optional[int]) -> bool:
    need = required_age(rating)
    if confirmed_age is None:
        return need <= UNCONFIRMED_MAX_AGE
    return confirmed_age >= need


def filter_allowed(
    items: Iterable[T],
    confirmed_age: Optional[int],
    *,
    key: Callable[[T], Any] = lambda item: item.get("age_rating"),  # type: ignore[attr-defined]
) -> List[T]:
    return [item for item in items if is_allowed(key(item), confirmed_age)]


def ensure_allowed(rating: Any, confirmed_age: Optional[int]) -> None:
    if not is_allowed(rating, confirmed_age):
        raise AgeGateError("age_restricted")


def normalize_rating(raw: Any) -> str:
    """Map user input (``"16"``, ``" 16+ "``) onto one of ``AGE_RATINGS``."""
    candidate = str(raw or "").strip()
    if candidate and not candidate.endswith("+"):
        candidate = candidate + "+"
    if candidate not in AGE_RATINGS:
        raise AgeGateError("invalid_age_rating")
    return candidate


def confirm_age(raw: Any) -> int:
    try:
        age = int(raw)
    except (TypeError, ValueError) as exc:
        raise AgeGateError("invalid_age") from exc
    if age < 0 or age > MAX_CONFIRMABLE_AGE:
        raise AgeGateError("invalid_age")
    return age


__all__ = [
    "AGE_RATINGS",
    "UNCONFIRMED_MAX_AGE",
    "AgeGateError",
    "required_age",
    "is_allowed",
    "filter_allowed",
    "ensure_allowed",
    "normalize_rating",
    "confirm_age",
]
