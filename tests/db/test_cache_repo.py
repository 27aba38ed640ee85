"""Tests for cache_repo helpers using in-memory SQLite."""
from __future__ import annotations

import pytest

from shortreads.db import app_session
from shortreads.db.engine import init_engine_once, reset_for_tests
from shortreads.db.models import FeedCacheEntry
from shortreads.db.repositories import cache_repo


@pytest.fixture(autouse=True)
def in_memory_db(monkeypatch):
    reset_for_tests(drop=True)
    monkeypatch.setenv("SHORTREADS_CACHE_DB_PATH", ":memory:")
    init_engine_once()
    yield
    reset_for_tests(drop=True)


def _count_entries() -> int:
    with app_session() as session:
        return session.query(FeedCacheEntry).count()


def test_put_entry_replaces_existing_payload():
    first = cache_repo.put_entry("feed", [{"story_id": 1}], fetched_at=100.0)
    second = cache_repo.put_entry("feed", [{"story_id": 2, "title": "Ёжик"}], fetched_at=200.0)

    assert second.id == first.id
    fetched = cache_repo.get_entry("feed")
    assert fetched is not None
    assert fetched.fetched_at == 200.0
    assert fetched.load_payload() == [{"story_id": 2, "title": "Ёжик"}]
    assert _count_entries() == 1


def test_get_entry_missing_returns_none():
    assert cache_repo.get_entry("nope") is None


def test_delete_entry_returns_boolean_result():
    cache_repo.put_entry("feed", {"a": 1})

    assert cache_repo.delete_entry("feed") is True
    assert cache_repo.delete_entry("feed") is False
    assert _count_entries() == 0


def test_purge_older_than_removes_only_stale_rows():
    cache_repo.put_entry("old", 1, fetched_at=10.0)
    cache_repo.put_entry("new", 2, fetched_at=500.0)

    removed = cache_repo.purge_older_than(100.0)

    assert removed == 1
    assert cache_repo.get_entry("old") is None
    assert cache_repo.get_entry("new") is not None


def test_corrupt_payload_loads_as_none():
    with app_session() as session:
        session.add(FeedCacheEntry(cache_key="broken", payload="{not json", fetched_at=1.0))

    entry = cache_repo.get_entry("broken")
    assert entry is not None
    assert entry.load_payload() is None


def test_put_entry_overwrites_row_inserted_concurrently(monkeypatch):
    with app_session() as session:
        session.add(FeedCacheEntry(cache_key="feed", payload="[1]", fetched_at=1.0))

    real_find = cache_repo._find
    seen = {"calls": 0}

    def find_once_missing(session, cache_key):
        seen["calls"] += 1
        if seen["calls"] == 1:
            return None
        return real_find(session, cache_key)

    monkeypatch.setattr(cache_repo, "_find", find_once_missing)

    entry = cache_repo.put_entry("feed", [2], fetched_at=5.0)

    assert seen["calls"] == 2
    assert entry.fetched_at == 5.0
    monkeypatch.setattr(cache_repo, "_find", real_find)
    stored = cache_repo.get_entry("feed")
    assert stored.load_payload() == [2]
    assert _count_entries() == 1
