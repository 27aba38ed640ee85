"""Tests for feed_ranking.smart_sort and its scoring helpers."""
from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, timezone

import pytest

from shortreads.services import feed_ranking

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _excerpt(excerpt_id, story_id, *, author_id=1, hours_old=1, genre="drama", likes=0, dislikes=0, position=0):
    return {
        "excerpt_id": excerpt_id,
        "story_id": story_id,
        "position": position,
        "author_id": author_id,
        "genre": genre,
        "created_at": (NOW - timedelta(hours=hours_old)).isoformat(),
        "likes_count": likes,
        "dislikes_count": dislikes,
    }


class _ZeroNoise(random.Random):
    """Deterministic rng: first excerpt of each story, zero noise."""

    def choice(self, seq):
        return seq[0]

    def random(self):
        return 0.0


def test_recency_score_decays_over_72_hours():
    assert feed_ranking.recency_score(NOW.isoformat(), NOW) == pytest.approx(1.0)
    three_days = (NOW - timedelta(hours=72)).isoformat()
    assert feed_ranking.recency_score(three_days, NOW) == pytest.approx(math.exp(-1))


def test_recency_score_handles_z_suffix_and_garbage():
    assert feed_ranking.recency_score("2024-05-01T12:00:00Z", NOW) == pytest.approx(1.0)
    assert feed_ranking.recency_score("yesterday", NOW) == 0.0
    assert feed_ranking.recency_score(None, NOW) == 0.0


def test_future_timestamp_counts_as_brand_new():
    future = (NOW + timedelta(hours=5)).isoformat()
    assert feed_ranking.recency_score(future, NOW) == pytest.approx(1.0)


def test_like_ratio_is_smoothed():
    assert feed_ranking.like_ratio(0, 0) == pytest.approx(0.5)
    assert feed_ranking.like_ratio(8, 0) == pytest.approx(0.9)
    assert feed_ranking.like_ratio("bad", None) == pytest.approx(0.5)


def test_genre_score_relative_to_strongest_positive_weight():
    weights = {"drama": 4, "horror": 2, "humor": -3}
    assert feed_ranking.genre_score("drama", weights) == pytest.approx(1.0)
    assert feed_ranking.genre_score("horror", weights) == pytest.approx(0.5)
    assert feed_ranking.genre_score("humor", weights) == 0.0
    assert feed_ranking.genre_score("poetry", weights) == 0.0
    assert feed_ranking.genre_score("drama", {}) == 0.0


def test_smart_sort_empty_input():
    assert feed_ranking.smart_sort([], now=NOW, rng=_ZeroNoise()) == []


def test_smart_sort_picks_one_excerpt_per_story():
    items = [
        _excerpt(1, 10, position=0),
        _excerpt(2, 10, position=1),
        _excerpt(3, 10, position=2),
        _excerpt(4, 11, author_id=2),
    ]
    result = feed_ranking.smart_sort(items, now=NOW, rng=random.Random(7))
    story_ids = [item["story_id"] for item in result]
    assert sorted(story_ids) == [10, 11]


def test_smart_sort_drops_read_stories():
    items = [_excerpt(1, 10), _excerpt(2, 11, author_id=2), _excerpt(3, 12, author_id=3)]
    result = feed_ranking.smart_sort(items, read_story_ids={"11", 12}, now=NOW, rng=_ZeroNoise())
    assert [item["story_id"] for item in result] == [10]


def test_smart_sort_prefers_newer_and_liked_stories():
    items = [
        _excerpt(1, 10, author_id=1, hours_old=200),
        _excerpt(2, 11, author_id=2, hours_old=1),
        _excerpt(3, 12, author_id=3, hours_old=200, likes=50),
    ]
    result = feed_ranking.smart_sort(items, now=NOW, rng=_ZeroNoise())
    assert [item["story_id"] for item in result] == [11, 12, 10]


def test_smart_sort_applies_genre_preferences():
    items = [
        _excerpt(1, 10, author_id=1, genre="horror"),
        _excerpt(2, 11, author_id=2, genre="romance"),
    ]
    result = feed_ranking.smart_sort(items, genre_weights={"romance": 5}, now=NOW, rng=_ZeroNoise())
    assert result[0]["story_id"] == 11


def test_smart_sort_is_stable_on_ties():
    items = [_excerpt(i, 100 + i, author_id=i) for i in range(1, 6)]
    result = feed_ranking.smart_sort(items, now=NOW, rng=_ZeroNoise())
    assert [item["story_id"] for item in result] == [101, 102, 103, 104, 105]


def test_smart_sort_caps_author_repetition_moving_overflow_down():
    items = [
        _excerpt(1, 10, author_id=7, hours_old=1),
        _excerpt(2, 11, author_id=7, hours_old=2),
        _excerpt(3, 12, author_id=7, hours_old=3),
        _excerpt(4, 13, author_id=8, hours_old=50),
    ]
    result = feed_ranking.smart_sort(items, now=NOW, rng=_ZeroNoise())
    assert [item["story_id"] for item in result] == [10, 11, 13, 12]


def test_smart_sort_limit_and_scores():
    items = [_excerpt(i, 100 + i, author_id=i, hours_old=i) for i in range(1, 6)]
    result = feed_ranking.smart_sort(items, now=NOW, rng=_ZeroNoise(), limit=2, record_scores=True)
    assert len(result) == 2
    (first, first_score), (second, second_score) = result
    assert first["story_id"] == 101
    assert first_score >= second_score
    assert 0.0 <= second_score <= 1.0


def test_cap_per_author_keeps_items_without_author():
    ranked = [{"author_id": None}, {"author_id": None}, {"author_id": None}]
    assert len(feed_ranking.cap_per_author(ranked, 1)) == 3
