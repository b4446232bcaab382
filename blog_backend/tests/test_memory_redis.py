from __future__ import annotations

import pytest
from conftest import run
from redis.exceptions import WatchError

from app.core.memory_redis import AsyncMemoryRedis


@pytest.fixture
def redis() -> AsyncMemoryRedis:
    return AsyncMemoryRedis()


def test_incr_counts_from_one(redis: AsyncMemoryRedis) -> None:
    assert run(redis.incr("seq")) == 1
    assert run(redis.incr("seq")) == 2
    assert run(redis.get("seq")) == "2"


def test_set_nx_returns_none_when_taken(redis: AsyncMemoryRedis) -> None:
    assert run(redis.set("k", "a", nx=True)) is True
    assert run(redis.set("k", "b", nx=True)) is None
    assert run(redis.get("k")) == "a"


def test_no_expiry_machinery(redis: AsyncMemoryRedis) -> None:
    assert not hasattr(redis, "_ttl")
    assert not hasattr(redis, "setex")


def test_pipeline_applies_queued_commands(redis: AsyncMemoryRedis) -> None:
    async def scenario() -> list:
        async with redis.pipeline(transaction=True) as pipe:
            pipe.hset("h", mapping={"a": 1})
            pipe.zadd("z", {"m": 1})
            return await pipe.execute()

    assert run(scenario()) == [1, 1]
    assert run(redis.hgetall("h")) == {"a": "1"}
    assert run(redis.zrevrange("z", 0, -1)) == ["m"]


def test_watch_reads_immediately(redis: AsyncMemoryRedis) -> None:
    run(redis.hset("h", mapping={"a": 1}))

    async def scenario() -> int:
        async with redis.pipeline(transaction=True) as pipe:
            await pipe.watch("h")
            return await pipe.exists("h")

    assert run(scenario()) == 1


def test_watched_key_change_aborts(redis: AsyncMemoryRedis) -> None:
    run(redis.hset("h", mapping={"a": 1}))

    async def scenario() -> None:
        async with redis.pipeline(transaction=True) as pipe:
            await pipe.watch("h")
            pipe.multi()
            pipe.lpush("h:items", "x")
            await redis.delete("h")
            await pipe.execute()

    with pytest.raises(WatchError):
        run(scenario())
    assert run(redis.exists("h:items")) == 0


def test_unrelated_change_does_not_abort(redis: AsyncMemoryRedis) -> None:
    async def scenario() -> list:
        async with redis.pipeline(transaction=True) as pipe:
            await pipe.watch("h")
            pipe.multi()
            pipe.hset("h", mapping={"a": 1})
            await redis.set("other", "1")
            return await pipe.execute()

    assert run(scenario()) == [1]
