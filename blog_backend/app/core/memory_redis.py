from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from redis.exceptions import WatchError


class AsyncMemoryRedis:
    """In-process stand-in for ``redis.asyncio.Redis`` covering the commands the store uses.

    Values come back as ``str`` the same way a client created with
    ``decode_responses=True`` returns them. Each command body is synchronous
    and runs under one lock; a per-key version counter backs WATCH.
    """

    def __init__(self) -> None:
        self._kv: Dict[str, str] = {}
        self._hash: Dict[str, Dict[str, str]] = {}
        self._sets: Dict[str, set] = {}
        self._lists: Dict[str, List[str]] = {}
        self._zsets: Dict[str, Dict[str, float]] = {}
        self._versions: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def _run(self, name: str, *args: Any, **kwargs: Any) -> Any:
        async with self._lock:
            return getattr(self, f"_{name}")(*args, **kwargs)

    def _touch(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def _has(self, key: str) -> bool:
        return (
            key in self._kv
            or bool(self._hash.get(key))
            or bool(self._sets.get(key))
            or bool(self._lists.get(key))
            or bool(self._zsets.get(key))
        )

    def pipeline(self, transaction: bool = True) -> "MemoryPipeline":
        return MemoryPipeline(self)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    # ---------- Strings ----------

    def _get(self, key: str) -> Optional[str]:
        return self._kv.get(key)

    def _set(self, key: str, value: Any, nx: bool | None = None) -> bool | None:
        if nx and key in self._kv:
            # redis-py returns None when NX blocks the write
            return None
        self._kv[key] = str(value)
        self._touch(key)
        return True

    def _incr(self, key: str) -> int:
        cur = int(self._kv.get(key, 0)) + 1
        self._kv[key] = str(cur)
        self._touch(key)
        return cur

    def _exists(self, *keys: str) -> int:
        return sum(1 for k in keys if self._has(k))

    def _delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._has(key):
                removed += 1
                self._touch(key)
            self._kv.pop(key, None)
            self._hash.pop(key, None)
            self._sets.pop(key, None)
            self._lists.pop(key, None)
            self._zsets.pop(key, None)
        return removed

    async def get(self, key: str) -> Optional[str]:
        return await self._run("get", key)

    async def set(self, key: str, value: Any, nx: bool | None = None) -> bool | None:
        return await self._run("set", key, value, nx=nx)

    async def incr(self, key: str) -> int:
        return await self._run("incr", key)

    async def exists(self, *keys: str) -> int:
        return await self._run("exists", *keys)

    async def delete(self, *keys: str) -> int:
        return await self._run("delete", *keys)

    # ---------- Hashes ----------

    def _hset(self, key: str, mapping: Dict[str, Any]) -> int:
        h = self._hash.setdefault(key, {})
        added = sum(1 for field in mapping if field not in h)
        h.update({field: str(value) for field, value in mapping.items()})
        self._touch(key)
        return added

    def _hgetall(self, key: str) -> Dict[str, str]:
        return dict(self._hash.get(key, {}))

    async def hset(self, key: str, mapping: Dict[str, Any]) -> int:
        return await self._run("hset", key, mapping=mapping)

    async def hgetall(self, key: str) -> Dict[str, str]:
        return await self._run("hgetall", key)

    # ---------- Sets ----------

    def _sadd(self, key: str, *members: Any) -> int:
        s = self._sets.setdefault(key, set())
        before = len(s)
        for m in members:
            s.add(str(m))
        if len(s) != before:
            self._touch(key)
        return len(s) - before

    def _srem(self, key: str, *members: Any) -> int:
        s = self._sets.setdefault(key, set())
        before = len(s)
        for m in members:
            s.discard(str(m))
        if len(s) != before:
            self._touch(key)
        return before - len(s)

    def _smembers(self, key: str) -> set:
        return set(self._sets.get(key, set()))

    def _sismember(self, key: str, member: Any) -> bool:
        return str(member) in self._sets.get(key, set())

    async def sadd(self, key: str, *members: Any) -> int:
        return await self._run("sadd", key, *members)

    async def srem(self, key: str, *members: Any) -> int:
        return await self._run("srem", key, *members)

    async def smembers(self, key: str) -> set:
        return await self._run("smembers", key)

    async def sismember(self, key: str, member: Any) -> bool:
        return await self._run("sismember", key, member)

    # ---------- Lists ----------

    def _lpush(self, key: str, *values: Any) -> int:
        items = self._lists.setdefault(key, [])
        for v in values:
            items.insert(0, str(v))
        self._touch(key)
        return len(items)

    def _lrange(self, key: str, start: int, end: int) -> List[str]:
        items = self._lists.get(key, [])
        stop = len(items) if end == -1 else end + 1
        return list(items[start:stop])

    def _lrem(self, key: str, count: int, value: Any) -> int:
        # only count == 0 (remove all occurrences) is needed here
        items = self._lists.get(key, [])
        kept = [v for v in items if v != str(value)]
        removed = len(items) - len(kept)
        if removed:
            self._lists[key] = kept
            self._touch(key)
        return removed

    async def lpush(self, key: str, *values: Any) -> int:
        return await self._run("lpush", key, *values)

    async def lrange(self, key: str, start: int, end: int) -> List[str]:
        return await self._run("lrange", key, start, end)

    async def lrem(self, key: str, count: int, value: Any) -> int:
        return await self._run("lrem", key, count, value)

    # ---------- Sorted sets ----------

    def _zadd(self, key: str, mapping: Dict[str, float]) -> int:
        z = self._zsets.setdefault(key, {})
        added = sum(1 for m in mapping if str(m) not in z)
        z.update({str(m): float(score) for m, score in mapping.items()})
        self._touch(key)
        return added

    def _zrevrange(self, key: str, start: int, end: int) -> List[str]:
        z = self._zsets.get(key, {})
        ordered = [m for m, _ in sorted(z.items(), key=lambda kv: (kv[1], kv[0]), reverse=True)]
        stop = len(ordered) if end == -1 else end + 1
        return ordered[start:stop]

    def _zrem(self, key: str, *members: Any) -> int:
        z = self._zsets.get(key, {})
        removed = 0
        for m in members:
            if z.pop(str(m), None) is not None:
                removed += 1
        if removed:
            self._touch(key)
        return removed

    async def zadd(self, key: str, mapping: Dict[str, float]) -> int:
        return await self._run("zadd", key, mapping=mapping)

    async def zrevrange(self, key: str, start: int, end: int) -> List[str]:
        return await self._run("zrevrange", key, start, end)

    async def zrem(self, key: str, *members: Any) -> int:
        return await self._run("zrem", key, *members)


class MemoryPipeline:
    """Mirror of redis-py's async transactional pipeline.

    After ``watch()`` and before ``multi()`` commands run immediately;
    otherwise they are queued and applied together by ``execute()``, which
    raises ``WatchError`` if a watched key changed in the meantime.
    """

    def __init__(self, client: AsyncMemoryRedis) -> None:
        self._client = client
        self._watched: Dict[str, int] = {}
        self._explicit = False
        self._queue: List[Tuple[Callable[..., Any], tuple, dict]] = []

    async def __aenter__(self) -> "MemoryPipeline":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.reset()

    async def reset(self) -> None:
        self._watched = {}
        self._explicit = False
        self._queue = []

    async def watch(self, *keys: str) -> None:
        for key in keys:
            self._watched[key] = self._client._versions.get(key, 0)

    def multi(self) -> None:
        self._explicit = True

    def __getattr__(self, name: str) -> Any:
        command = getattr(self._client, f"_{name}")

        if self._watched and not self._explicit:

            async def immediate(*args: Any, **kwargs: Any) -> Any:
                return await self._client._run(name, *args, **kwargs)

            return immediate

        def queued(*args: Any, **kwargs: Any) -> "MemoryPipeline":
            self._queue.append((command, args, kwargs))
            return self

        return queued

    async def execute(self) -> List[Any]:
        try:
            async with self._client._lock:
                for key, version in self._watched.items():
                    if self._client._versions.get(key, 0) != version:
                        raise WatchError("Watched variable changed.")
                return [command(*args, **kwargs) for command, args, kwargs in self._queue]
        finally:
            await self.reset()
