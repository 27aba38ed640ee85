"""Server-rendered pages, short links, manifest and health check."""
from __future__ import annotations

import pytest

from shortreads.backend import BackendUnavailableError
from shortreads.db.engine import reset_for_tests
from shortreads.i18n import SESSION_LOCALE_KEY
from shortreads.services import authors_service, feed_service, stories_service
from shortreads.services.age_gate import AgeGateError
from shortreads.startup import create_app


@pytest.fixture
def app(monkeypatch):
    reset_for_tests(drop=True)
    monkeypatch.setenv("SHORTREADS_CACHE_DB_PATH", ":memory:")
    app = create_app({"SECRET_KEY": "pages-test-secret", "TESTING": True})
    yield app
    reset_for_tests(drop=True)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.mark.parametrize(
    "path,location",
    [
        ("/s/night-train-ab12cd", "/read?s=night-train-ab12cd"),
        ("/s/%D0%BF%D0%BE%D0%B5%D0%B7%D0%B4", "/read?s=%D0%BF%D0%BE%D0%B5%D0%B7%D0%B4"),
        ("/s/a%20b%26c", "/read?s=a%20b%26c"),
        ("/s/", "/"),
    ],
)
def test_short_link_redirects(client, path, location):
    resp = client.get(path)
    assert resp.status_code == 302
    assert resp.headers["Location"] == location


def test_feed_page_renders_items(monkeypatch, client):
    monkeypatch.setattr(feed_service, "load_feed", lambda viewer, limit: [
        {"story_id": 1, "author_id": 3, "author_name": "Ann", "title": "Sea story", "slug": "sea-1",
         "text": "The sea was calm.", "genre": "drama", "age_rating": "6+", "likes_count": 4},
    ])
    resp = client.get("/")
    body = resp.get_data(as_text=True)
    assert resp.status_code == 200
    assert "Sea story" in body
    assert "/s/sea-1" in body


def test_feed_page_shows_inline_error(monkeypatch, client):
    def down(viewer, limit):
        raise BackendUnavailableError("backend_unreachable")

    monkeypatch.setattr(feed_service, "load_feed", down)
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Server is unreachable" in resp.get_data(as_text=True)


def test_read_page_states(monkeypatch, client):
    story = {"id": 1, "author_id": 3, "title": "Sea story", "slug": "sea-1", "body": "First.\nSecond.",
             "genre": "drama", "age_rating": "0+", "status": "published", "likes_count": 0,
             "dislikes_count": 0, "literacy_score": 7.5, "authors": {"display_name": "Ann"}}

    def lookup(slug, viewer):
        if slug == "sea-1":
            return story
        if slug == "adult-1":
            raise AgeGateError("age_restricted")
        raise stories_service.StoryNotFoundError("story_not_found")

    monkeypatch.setattr(stories_service, "get_story_by_slug", lookup)

    ok = client.get("/read?s=sea-1")
    assert ok.status_code == 200
    text = ok.get_data(as_text=True)
    assert "<p>First.</p>" in text and "<p>Second.</p>" in text
    assert client.get("/read?s=adult-1").status_code == 403
    assert client.get("/read?s=nope").status_code == 404
    assert client.get("/read").status_code == 302


def test_profile_page_unknown_author(monkeypatch, client):
    monkeypatch.setattr(authors_service, "get_author", lambda author_id: None)
    assert client.get("/profile/77").status_code == 404


def test_write_page_prompts_login(client):
    resp = client.get("/write")
    assert resp.status_code == 200
    assert "Please sign in first." in resp.get_data(as_text=True)


def test_manifest(client):
    resp = client.get("/manifest.webmanifest")
    assert resp.status_code == 200
    assert resp.mimetype == "application/manifest+json"
    data = resp.get_json(force=True)
    assert data["start_url"] == "/"
    assert data["name"] == "shortreads"


def test_healthz_checks_cache_db(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.get_json()["db"] is True


def test_create_app_is_idempotent_to_rewire(app):
    from shortreads.startup import init_app

    rules_before = len(list(app.url_map.iter_rules()))
    init_app(app)
    assert len(list(app.url_map.iter_rules())) == rules_before


def test_feed_hides_age_notice_once_confirmed_even_for_zero(monkeypatch, client):
    monkeypatch.setattr(feed_service, "load_feed", lambda viewer, limit: [])

    assert 'id="age-notice"' in client.get("/").get_data(as_text=True)

    assert client.post("/api/age", json={"age": 0}).status_code == 200
    assert 'id="age-notice"' not in client.get("/").get_data(as_text=True)


def test_language_switch_changes_page_language(client):
    assert '<html lang="en">' in client.get("/write").get_data(as_text=True)

    resp = client.post("/language/switch", json={"language": "RU"})
    assert resp.status_code == 200
    assert resp.get_json()["language"] == "ru"
    with client.session_transaction() as sess:
        assert sess[SESSION_LOCALE_KEY] == "ru"

    assert '<html lang="ru">' in client.get("/write").get_data(as_text=True)


def test_language_switch_rejects_unknown_language(client):
    resp = client.post("/language/switch", json={"language": "de"})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "unsupported_language", "supported": ["en", "ru"]}
    with client.session_transaction() as sess:
        assert SESSION_LOCALE_KEY not in sess


def test_session_language_wins_over_accept_language(app):
    first = app.test_client()
    second = app.test_client()
    first.post("/language/switch", data={"lang": "en"})

    assert '<html lang="en">' in first.get("/write", headers={"Accept-Language": "ru"}).get_data(as_text=True)
    assert '<html lang="ru">' in second.get("/write", headers={"Accept-Language": "ru"}).get_data(as_text=True)
