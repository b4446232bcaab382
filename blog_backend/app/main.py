from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.endpoints import posts, users
from .core.config import get_settings
from .core.store import ContentStore

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_redis_client() -> Any:
    if settings.in_memory_store:
        from .core.memory_redis import AsyncMemoryRedis

        logger.info("Using in-process store")
        return AsyncMemoryRedis()

    import redis.asyncio as redis

    return redis.from_url(settings.redis_url, decode_responses=True)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[override]
    # tests may install their own store before startup
    if getattr(app.state, "store", None) is None:
        app.state.store = ContentStore(create_redis_client())
    store = app.state.store
    try:
        await store.redis.ping()
        await store.sweep_deleting()
    except Exception as e:
        logger.warning("Store not reachable at startup: %s", e)
    yield
    try:
        await store.redis.close()
    except Exception as e:  # pragma: no cover - shutdown diagnostics only
        logger.warning("Error closing store connection: %s", e)


app = FastAPI(title="Blog Backend", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/healthz")
async def healthz(request: Request) -> dict[str, Any]:
    status: dict[str, Any] = {"ok": True}
    store = getattr(request.app.state, "store", None)
    if store is None:
        status["store"] = {"connected": False, "message": "store not initialized"}
        return status
    try:
        pong = await store.redis.ping()
        status["store"] = {"connected": bool(pong)}
    except Exception as e:  # pragma: no cover - diagnostic only
        status["store"] = {"connected": False, "error": str(e)}
    return status


app.include_router(posts.router, prefix="/posts", tags=["posts"])
app.include_router(users.router, prefix="/u", tags=["users"])
