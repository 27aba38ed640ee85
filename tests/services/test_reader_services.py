"""Tests for authors, reading history, preferences and notifications."""
from __future__ import annotations

import pytest

from shortreads.backend import BackendUnavailableError
from shortreads.services import authors_service, history_service, notifications_service, preferences_service


@pytest.fixture(autouse=True)
def clear_profile_cache():
    authors_service.clear_cache()
    yield
    authors_service.clear_cache()


# ---------------- authors ---------------

def test_find_or_create_is_idempotent(fake_backend):
    identity = {"telegram_id": "555", "display_name": "Anna", "photo_url": "https://t.me/p.jpg"}
    first = authors_service.find_or_create(identity)
    second = authors_service.find_or_create(identity)

    assert first["id"] == second["id"]
    assert first["avatar_url"] == "https://t.me/p.jpg"
    assert len(fake_backend.rows("authors")) == 1


def test_get_author_is_cached_until_invalidated(fake_backend):
    author = fake_backend.seed("authors", telegram_id="1", display_name="Old")
    assert authors_service.get_author(author["id"])["display_name"] == "Old"

    author["display_name"] = "New"
    assert authors_service.get_author(author["id"])["display_name"] == "Old"
    authors_service.invalidate(author["id"])
    assert authors_service.get_author(author["id"])["display_name"] == "New"
    assert authors_service.get_author(999) is None


def test_update_profile_validates_and_refreshes(fake_backend):
    author = fake_backend.seed("authors", telegram_id="1", display_name="Old")
    authors_service.get_author(author["id"])

    updated = authors_service.update_profile(author["id"], display_name="  Fresh  ", bio="Hi")
    assert updated["display_name"] == "Fresh"
    assert authors_service.get_author(author["id"])["display_name"] == "Fresh"

    for kwargs, code in [
        ({"display_name": " "}, "display_name_required"),
        ({"display_name": "x" * 81}, "display_name_too_long"),
        ({"bio": "x" * 501}, "bio_too_long"),
        ({}, "nothing_to_update"),
    ]:
        with pytest.raises(authors_service.AuthorValidationError) as excinfo:
            authors_service.update_profile(author["id"], **kwargs)
        assert str(excinfo.value) == code


# ---------------- history ---------------

def test_mark_read_counts_first_read_once(fake_backend):
    story = fake_backend.seed("stories", views_count=0, genre="fantasy")

    assert history_service.mark_read(3, story["id"], genre="fantasy") is True
    assert history_service.mark_read(3, story["id"], genre="fantasy") is False

    assert story["views_count"] == 1
    assert len(fake_backend.rows("reading_history")) == 1
    assert history_service.read_story_ids(3) == {story["id"]}
    assert preferences_service.genre_weights(3) == {"fantasy": preferences_service.READ_DELTA}


def test_mark_read_survives_view_counter_failure(monkeypatch, fake_backend):
    def broken_rpc(*_a, **_k):
        raise BackendUnavailableError("backend_unreachable")

    monkeypatch.setattr(history_service.client, "rpc", broken_rpc)
    assert history_service.mark_read(3, 10, genre="not-a-genre") is True


# ---------------- preferences ---------------

def test_set_preferences_replaces_all_genres(fake_backend):
    weights = preferences_service.set_preferences(4, ["Horror", "drama", "horror"])

    assert weights["horror"] == preferences_service.EXPLICIT_WEIGHT
    assert weights["drama"] == preferences_service.EXPLICIT_WEIGHT
    assert weights["poetry"] == 0.0
    assert len(fake_backend.rows("preferences")) == len(preferences_service.GENRES)


def test_set_preferences_rejects_unknown_genre(fake_backend):
    with pytest.raises(preferences_service.PreferenceValidationError):
        preferences_service.set_preferences(4, ["western"])


def test_adjust_clamps_weight(fake_backend):
    for _ in range(40):
        preferences_service.adjust(4, "humor", preferences_service.LIKE_DELTA)
    assert preferences_service.genre_weights(4)["humor"] == preferences_service.MAX_WEIGHT


# ---------------- notifications ---------------

def test_notifications_flow(fake_backend):
    assert notifications_service.notify(8, "like", "Someone liked it", story_id=1) is True
    assert notifications_service.notify(8, "story_approved", "Published") is True

    assert notifications_service.unread_count(8) == 2
    assert len(notifications_service.list_for(8)) == 2
    assert notifications_service.mark_all_read(8) == 2
    assert notifications_service.unread_count(8) == 0


def test_notify_swallows_backend_errors(monkeypatch, fake_backend):
    def broken_insert(*_a, **_k):
        raise BackendUnavailableError("backend_unreachable")

    monkeypatch.setattr(notifications_service.client, "insert", broken_insert)
    assert notifications_service.notify(8, "like", "x") is False


def test_notify_rejects_unknown_kind(fake_backend):
    with pytest.raises(ValueError):
        notifications_service.notify(8, "poke", "x")
