from __future__ import annotations

import pytest
from conftest import bearer
from fastapi.testclient import TestClient

from app.core.config import get_settings


@pytest.fixture
def admin_names():
    settings = get_settings()
    saved = set(settings.admin_usernames)
    settings.admin_usernames = {"root-admin"}
    yield
    settings.admin_usernames = saved


def _register(client: TestClient, username: str, password: str = "secret123"):
    return client.post("/u/registration", json={"username": username, "password": password})


def _login(client: TestClient, username: str, password: str = "secret123"):
    return client.post("/u/login", json={"username": username, "password": password})


def test_register_standard_user(client: TestClient) -> None:
    resp = _register(client, "dana")
    assert resp.status_code == 200
    body = resp.json()
    assert body["username"] == "dana"
    assert body["role"] == "standard"
    assert "password_hash" not in body


def test_register_duplicate(client: TestClient) -> None:
    _register(client, "dana")
    assert _register(client, "dana").status_code == 409


def test_register_short_password(client: TestClient) -> None:
    assert _register(client, "dana", "123").status_code == 422


def test_login_wrong_password(client: TestClient) -> None:
    _register(client, "dana")
    assert _login(client, "dana", "wrong-pass").status_code == 401


def test_login_unknown_user(client: TestClient) -> None:
    assert _login(client, "ghost").status_code == 401


def test_standard_token_can_comment_but_not_post(client: TestClient, admin) -> None:
    created = client.post("/posts", json={"title": "News", "body": "b"}, headers=admin["headers"])
    assert created.status_code == 200
    _register(client, "dana")
    token = _login(client, "dana").json()["token"]

    assert client.post("/posts", json={"title": "Mine", "body": "b"}, headers=bearer(token)).status_code == 403
    resp = client.post("/posts/News/comments", json={"content": "hi"}, headers=bearer(token))
    assert resp.status_code == 200
    thread = client.get("/posts/News").json()[0]
    assert thread["comments"][0]["postedBy"]["username"] == "dana"


def test_configured_admin_can_post(client: TestClient, admin_names) -> None:
    assert _register(client, "root-admin").json()["role"] == "admin"
    token = _login(client, "root-admin").json()["token"]
    resp = client.post("/posts", json={"title": "Hi", "body": ""}, headers=bearer(token))
    assert resp.status_code == 200
