import time

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from sora_studio.main import app

SECRET = "test-jwt-secret"


def _token(**claims):
    payload = {"sub": "user-1", "aud": "authenticated", "email": "a@example.com", "exp": int(time.time()) + 600}
    payload.update(claims)
    return jwt.encode({k: v for k, v in payload.items() if v is not None}, SECRET, algorithm="HS256")


@pytest.fixture
def auth_client(db, settings, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_ENABLED", True)
    return TestClient(app)


def test_auth_disabled_allows_anonymous(db):
    assert TestClient(app).get("/api/videos").status_code == 200


def test_missing_token_is_rejected(auth_client):
    resp = auth_client.get("/api/videos")
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


def test_valid_token_is_accepted(auth_client):
    resp = auth_client.get("/api/videos", headers={"Authorization": f"Bearer {_token()}"})
    assert resp.status_code == 200


@pytest.mark.parametrize("token", [
    "not-a-jwt",
    _token(aud="anon"),
    _token(exp=int(time.time()) - 60),
    _token(sub=None),
    jwt.encode({"sub": "user-1", "aud": "authenticated"}, "other-secret", algorithm="HS256"),
])
def test_invalid_tokens_are_rejected(auth_client, token):
    resp = auth_client.get("/api/videos", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_liveness_routes_stay_public(auth_client):
    assert auth_client.get("/").status_code == 200
    assert auth_client.get("/health").status_code == 200
