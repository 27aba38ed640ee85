"""Feed personalization: pick, score and order excerpts for one viewer.

Weights (sum to 1.0):
    recency  0.35  exp(-age_hours / 72)
    genre    0.30  viewer weight for the story genre / strongest weight
    likes    0.25  smoothed like ratio (likes + 1) / (likes + dislikes + 2)
    random   0.10  uniform noise so the feed does not freeze
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

RECENCY_WEIGHT = 0.35
GENRE_WEIGHT = 0.30
LIKES_WEIGHT = 0.25
RANDOM_WEIGHT = 0.10
RECENCY_DECAY_HOURS = 72.0
DEFAULT_MAX_PER_AUTHOR = 2

Excerpt = Dict[str, Any]


@dataclass(frozen=True)
class ScoreBreakdown:
    recency: float
    genre: float
    likes: float
    noise: float

    @property
    def total(self) -> float:
        return (
            self.recency * RECENCY_WEIGHT
            + self.genre * GENRE_WEIGHT
            + self.likes * LIKES_WEIGHT
            + self.noise * RANDOM_WEIGHT
        )


def parse_timestamp(raw: Any) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if not isinstance(raw, str) or not raw.strip():
        return None
    candidate = raw.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency_score(created_at: Any, now: datetime) -> float:
    stamp = parse_timestamp(created_at)
    if stamp is None:
        return 0.0
    age_hours = max(0.0, (now - stamp).total_seconds() / 3600.0)
    return math.exp(-age_hours / RECENCY_DECAY_HOURS)


def genre_score(genre: Optional[str], weights: Mapping[str, float]) -> float:
    positive = [w for w in weights.values() if w > 0]
    if not genre or not positive:
        return 0.0
    value = weights.get(genre, 0.0)
    if value <= 0:
        return 0.0
    return min(1.0, value / max(positive))


def like_ratio(likes: Any, dislikes: Any) -> float:
    up = _as_count(likes)
    down = _as_count(dislikes)
    return (up + 1) / (up + down + 2)


def _as_count(raw: Any) -> int:
    try:
        return max(0, int(raw or 0))
    except (TypeError, ValueError):
        return 0


def group_by_story(excerpts: Iterable[Excerpt]) -> Dict[Any, List[Excerpt]]:
    """Excerpts grouped per story, stories in order of first appearance."""
    groups: Dict[Any, List[Excerpt]] = {}
    for item in excerpts:
        story_id = item.get("story_id")
        if story_id is None:
            continue
        groups.setdefault(story_id, []).append(item)
    return groups


def cap_per_author(ranked: Sequence[Excerpt], max_per_author: int) -> List[Excerpt]:
    """Keep at most ``max_per_author`` items per author in the head.

    Overflow items are appended after the head in their ranked order, so no
    story disappears from the feed, it only moves down.
    """
    if max_per_author <= 0:
        return list(ranked)
    seen: Dict[Any, int] = {}
    head: List[Excerpt] = []
    overflow: List[Excerpt] = []
    for item in ranked:
        author = item.get("author_id")
        if author is None:
            head.append(item)
            continue
        count = seen.get(author, 0)
        if count < max_per_author:
            head.append(item)
            seen[author] = count + 1
        else:
            overflow.append(item)
    return head + overflow


def smart_sort(
    excerpts: Iterable[Excerpt],
    *,
    read_story_ids: Iterable[Any] = (),
    genre_weights: Optional[Mapping[str, float]] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    max_per_author: int = DEFAULT_MAX_PER_AUTHOR,
    limit: Optional[int] = None,
    record_scores: bool = False,
) -> Union[List[Excerpt], List[Tuple[Excerpt, float]]]:
    """Return the personalized feed order for ``excerpts``.

    One excerpt is drawn per story, stories already read are dropped, the rest
    are scored and sorted (stable on ties), author repetition is capped and the
    result is cut to ``limit``.
    """
    source = rng or random.Random()
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    weights = dict(genre_weights or {})
    already_read = {str(story_id) for story_id in read_story_ids}

    scored: List[Tuple[Excerpt, float]] = []
    for story_id, group in group_by_story(excerpts).items():
        if str(story_id) in already_read:
            continue
        pick = group[0] if len(group) == 1 else source.choice(group)
        breakdown = ScoreBreakdown(
            recency=recency_score(pick.get("created_at"), current),
            genre=genre_score(pick.get("genre"), weights),
            likes=like_ratio(pick.get("likes_count"), pick.get("dislikes_count")),
            noise=source.random(),
        )
        scored.append((pick, breakdown.total))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    score_of = {id(item): score for item, score in scored}
    ordered = cap_per_author([item for item, _ in scored], max_per_author)
    if limit is not None:
        ordered = ordered[: max(0, limit)]
    if record_scores:
        return [(item, round(score_of[id(item)], 6)) for item in ordered]
    return ordered


__all__ = [
    "ScoreBreakdown",
    "parse_timestamp",
    "recency_score",
    "genre_score",
    "like_ratio",
    "group_by_story",
    "cap_per_author",
    "smart_sort",
]
