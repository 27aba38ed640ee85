"""Tests for like/dislike toggling, preference nudges and notifications."""
from __future__ import annotations

import pytest

from shortreads.services import preferences_service, reactions_service
from shortreads.utils.identity import PermissionError, Viewer

READER = Viewer(author_id=2, display_name="Reader")
WRITER = Viewer(author_id=1, display_name="Writer")


@pytest.fixture
def story(fake_backend):
    return fake_backend.seed("stories", author_id=1, title="Sea", genre="drama", status="published")


@pytest.mark.parametrize(
    "previous,requested,expected",
    [(None, "like", "like"), ("like", "like", None), ("like", "dislike", "dislike"), ("dislike", "dislike", None)],
)
def test_toggle_outcome(previous, requested, expected):
    assert reactions_service.toggle_outcome(previous, requested) == expected


def test_unknown_kind_rejected():
    with pytest.raises(reactions_service.ReactionValidationError):
        reactions_service.normalize_kind("love")
    assert reactions_service.normalize_kind(" LIKE ") == "like"


def test_anonymous_cannot_react(fake_backend, story):
    with pytest.raises(PermissionError):
        reactions_service.react(Viewer(), story["id"], "like")


def test_like_then_unlike(fake_backend, story):
    first = reactions_service.react(READER, story["id"], "like")
    assert first == {"story_id": story["id"], "reaction": "like", "previous": None}
    assert fake_backend.find("reactions", author_id=2, story_id=story["id"])["kind"] == "like"
    assert preferences_service.genre_weights(2) == {"drama": preferences_service.LIKE_DELTA}
    note = fake_backend.find("notifications", author_id=1, kind="like")
    assert note is not None and "Reader" in note["message"]

    second = reactions_service.react(READER, story["id"], "like")
    assert second["reaction"] is None
    assert fake_backend.rows("reactions") == []
    assert preferences_service.genre_weights(2) == {"drama": 0.0}


def test_switch_like_to_dislike_updates_row(fake_backend, story):
    reactions_service.react(READER, story["id"], "like")
    result = reactions_service.react(READER, story["id"], "dislike")

    assert result == {"story_id": story["id"], "reaction": "dislike", "previous": "like"}
    assert len(fake_backend.rows("reactions")) == 1
    expected = preferences_service.DISLIKE_DELTA
    assert preferences_service.genre_weights(2)["drama"] == pytest.approx(expected)
    assert len([n for n in fake_backend.rows("notifications") if n["kind"] == "like"]) == 1


def test_self_like_does_not_notify(fake_backend, story):
    reactions_service.react(WRITER, story["id"], "like")
    assert fake_backend.rows("notifications") == []


def test_unpublished_story_cannot_be_rated(fake_backend):
    pending = fake_backend.seed("stories", author_id=1, title="Draft", genre="drama", status="pending")
    with pytest.raises(reactions_service.ReactionValidationError) as excinfo:
        reactions_service.react(READER, pending["id"], "like")
    assert str(excinfo.value) == "story_not_found"
    with pytest.raises(reactions_service.ReactionValidationError):
        reactions_service.react(READER, 999, "like")
