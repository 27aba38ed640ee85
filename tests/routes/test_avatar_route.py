"""Avatar upload endpoint: CORS preflight, validation, success payload."""
from __future__ import annotations

import io

import pytest

from shortreads.backend import client as backend_client
from shortreads.db.engine import reset_for_tests
from shortreads.services import avatar_service
from shortreads.startup import create_app
from shortreads.utils.identity import SESSION_AUTHOR_ID, SESSION_TELEGRAM_ID


@pytest.fixture
def client(monkeypatch):
    reset_for_tests(drop=True)
    monkeypatch.setenv("SHORTREADS_CACHE_DB_PATH", ":memory:")
    app = create_app({"SECRET_KEY": "avatar-test-secret", "TESTING": True})
    yield app.test_client()
    reset_for_tests(drop=True)


def _sign_in(client, author_id, telegram_id="77"):
    with client.session_transaction() as sess:
        sess[SESSION_AUTHOR_ID] = author_id
        sess[SESSION_TELEGRAM_ID] = telegram_id


@pytest.fixture
def storage(monkeypatch):
    uploads = []
    monkeypatch.setattr(backend_client, "is_configured", lambda service=False: True)
    monkeypatch.setattr(backend_client, "upload_object", lambda *a, **k: uploads.append(a))
    return uploads


def test_preflight_returns_cors_headers(client):
    resp = client.open("/api/upload-avatar", method="OPTIONS")
    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert "POST" in resp.headers["Access-Control-Allow-Methods"]


def test_missing_fields_rejected(client):
    resp = client.post("/api/upload-avatar", data={"author_id": "5"})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Missing file or author_id"}
    assert resp.headers["Access-Control-Allow-Origin"] == "*"


def test_successful_upload_passes_form_fields(monkeypatch, client):
    _sign_in(client, author_id=5)
    seen = {}

    def fake_upload(file, author_id, telegram_id, *, viewer):
        seen.update(filename=file.filename, author_id=author_id, telegram_id=telegram_id, viewer=viewer.author_id)
        return "https://cdn.example/avatars/5/avatar.png?t=1"

    monkeypatch.setattr(avatar_service, "upload_avatar", fake_upload)
    resp = client.post(
        "/api/upload-avatar",
        data={"file": (io.BytesIO(b"png"), "me.png"), "author_id": "5", "telegram_id": "77"},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "avatar_url": "https://cdn.example/avatars/5/avatar.png?t=1"}
    assert seen == {"filename": "me.png", "author_id": "5", "telegram_id": "77", "viewer": 5}


def test_ownership_mismatch_is_forbidden(monkeypatch, client):
    def mismatch(*_a, **_k):
        raise avatar_service.AvatarUploadError("Unauthorized", 403)

    monkeypatch.setattr(avatar_service, "upload_avatar", mismatch)
    resp = client.post(
        "/api/upload-avatar",
        data={"file": (io.BytesIO(b"x"), "a.jpg"), "author_id": "5", "telegram_id": "1"},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "Unauthorized"


def test_anonymous_upload_rejected_before_storage(client, storage):
    resp = client.post(
        "/api/upload-avatar",
        data={"file": (io.BytesIO(b"png"), "me.png"), "author_id": "42"},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Unauthorized"}
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert storage == []


def test_upload_for_another_author_rejected(client, storage):
    _sign_in(client, author_id=5)
    resp = client.post(
        "/api/upload-avatar",
        data={"file": (io.BytesIO(b"png"), "me.png"), "author_id": "42"},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 403
    assert resp.get_json() == {"error": "Unauthorized"}
    assert storage == []
