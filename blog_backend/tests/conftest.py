from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.core.memory_redis import AsyncMemoryRedis
from app.core.store import ContentStore
from app.core.tokens import Identity, TokenVerifier
from app.main import app


def run(coro: Any) -> Any:
    return asyncio.run(coro)


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class IndexWriteFails(AsyncMemoryRedis):
    """Drops the connection on the next index write."""

    def __init__(self) -> None:
        super().__init__()
        self.failures = 1

    def _zadd(self, key: str, mapping: dict) -> int:
        if self.failures:
            self.failures -= 1
            raise ConnectionError("index write lost")
        return super()._zadd(key, mapping)


def document_counts(store: ContentStore) -> tuple[int, int]:
    """(posts, comments) currently held by the in-process store."""
    keys = [k for k, v in store.redis._hash.items() if v]
    posts = sum(1 for k in keys if k.startswith("post:"))
    comments = sum(1 for k in keys if k.startswith("comment:"))
    return posts, comments


@pytest.fixture
def store() -> ContentStore:
    return ContentStore(AsyncMemoryRedis())


@pytest.fixture
def verifier() -> TokenVerifier:
    settings = get_settings()
    return TokenVerifier(settings.token_secret, settings.token_algorithm)


@pytest.fixture
def client(store: ContentStore):
    """Client against the real app; lifespan is not run, the store is installed directly."""
    app.state.store = store
    yield TestClient(app)
    app.state.store = None


@pytest.fixture
def admin(store: ContentStore, verifier: TokenVerifier) -> dict[str, Any]:
    user = run(store.insert_user("alice", "unused-hash", "admin"))
    token = verifier.issue(Identity(subject_id=user["id"], role="admin"), 600)
    return {"user": user, "token": token, "headers": bearer(token)}


@pytest.fixture
def member(store: ContentStore, verifier: TokenVerifier) -> dict[str, Any]:
    user = run(store.insert_user("bob", "unused-hash", "standard"))
    token = verifier.issue(Identity(subject_id=user["id"], role="standard"), 600)
    return {"user": user, "token": token, "headers": bearer(token)}
