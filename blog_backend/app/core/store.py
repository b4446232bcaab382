from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Any, Callable, Iterable, Optional

from redis.exceptions import WatchError

from .errors import Conflict
from .validation import escape

logger = logging.getLogger(__name__)

POSTS_INDEX = "posts:by_created"
POSTS_DELETING = "posts:deleting"
WATCH_RETRIES = 5


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def slugify(title: str) -> str:
    return title.replace(" ", "-")


def title_key(key: str) -> str:
    """Canonical lookup key for a raw path segment or title.

    Titles are stored escaped, so the segment is escaped the same way before
    spaces become ``-``; ``-`` and space are interchangeable.
    """
    return slugify(escape(key))


class ContentStore:
    """Posts, comments and users kept in redis.

    A post is a hash at ``post:{id}`` with its comment ids in the list
    ``post:{id}:comments`` (newest first). Comments live at ``comment:{id}``.
    Writes that depend on a post still existing run as WATCH/MULTI
    transactions; nothing spans posts and comments transactionally.
    """

    def __init__(self, redis: Any) -> None:
        self.redis = redis

    # ---------- Posts ----------

    async def insert_post(self, title: str, body: str, posted_by: str) -> dict[str, Any]:
        """Insert a post whose ``title`` is already escaped."""
        pid = new_id()
        slug = slugify(title)
        claimed = await self.redis.set(f"post:byslug:{slug}", pid, nx=True)
        if not claimed:
            raise Conflict(f"A post with the title key '{slug}' already exists")
        created = _now()
        try:
            # insertion sequence orders the index; timestamps can tie
            seq = await self.redis.incr("posts:seq")
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hset(
                    f"post:{pid}",
                    mapping={
                        "id": pid,
                        "slug": slug,
                        "title": title,
                        "body": body,
                        "posted_by": posted_by,
                        "created": created.isoformat(),
                    },
                )
                pipe.zadd(POSTS_INDEX, {pid: seq})
                await pipe.execute()
        except Exception:
            await self._discard_insert(pid, slug)
            raise
        return await self._load_post(pid)

    async def _discard_insert(self, pid: str, slug: str) -> None:
        logger.warning("Discarding partially written post %s", pid)
        await self.redis.zrem(POSTS_INDEX, pid)
        await self.redis.delete(f"post:{pid}")
        if await self.redis.get(f"post:byslug:{slug}") == pid:
            await self.redis.delete(f"post:byslug:{slug}")

    async def _write_if_live(self, pid: str, write: Callable[[Any], Any]) -> bool:
        """Apply ``write`` to a transaction only while the post exists and is not being deleted."""
        async with self.redis.pipeline(transaction=True) as pipe:
            for _ in range(WATCH_RETRIES):
                try:
                    await pipe.watch(f"post:{pid}", POSTS_DELETING)
                    live = await pipe.exists(f"post:{pid}") and not await pipe.sismember(POSTS_DELETING, pid)
                    if not live:
                        await pipe.reset()
                        return False
                    pipe.multi()
                    write(pipe)
                    await pipe.execute()
                    return True
                except WatchError:
                    continue
        raise WatchError(f"post {pid} kept changing during the write")

    async def _load_post(self, pid: str) -> Optional[dict[str, Any]]:
        data = await self.redis.hgetall(f"post:{pid}")
        if not data or await self.redis.sismember(POSTS_DELETING, pid):
            return None
        data["comments"] = await self.redis.lrange(f"post:{pid}:comments", 0, -1)
        return data

    async def find_posts(self) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for pid in await self.redis.zrevrange(POSTS_INDEX, 0, -1):
            data = await self.redis.hgetall(f"post:{pid}")
            if not data or await self.redis.sismember(POSTS_DELETING, pid):
                continue
            # projection: no body, no comments
            data.pop("body", None)
            items.append(data)
        return items

    async def resolve_key(self, key: str) -> Optional[str]:
        return await self.redis.get(f"post:byslug:{title_key(key)}")

    async def find_post_by_key(self, key: str) -> Optional[dict[str, Any]]:
        pid = await self.resolve_key(key)
        if not pid:
            return None
        return await self._load_post(pid)

    async def find_post_by_id(self, pid: str) -> Optional[dict[str, Any]]:
        return await self._load_post(pid)

    async def post_key_exists(self, key: str) -> bool:
        return await self.find_post_by_key(key) is not None

    async def post_id_exists(self, pid: str) -> bool:
        if not await self.redis.exists(f"post:{pid}"):
            return False
        return not await self.redis.sismember(POSTS_DELETING, pid)

    async def update_post(self, key: str, title: str, body: str) -> Optional[dict[str, Any]]:
        pid = await self.resolve_key(key)
        if not pid:
            return None
        written = await self._write_if_live(
            pid, lambda pipe: pipe.hset(f"post:{pid}", mapping={"title": title, "body": body})
        )
        if not written:
            return None
        return await self._load_post(pid)

    async def push_comment(self, key: str, comment_id: str) -> Optional[dict[str, Any]]:
        pid = await self.resolve_key(key)
        if not pid:
            return None
        if not await self._write_if_live(pid, lambda pipe: pipe.lpush(f"post:{pid}:comments", comment_id)):
            return None
        return await self._load_post(pid)

    async def pull_comment(self, pid: str, comment_id: str) -> int:
        return int(await self.redis.lrem(f"post:{pid}:comments", 0, comment_id))

    async def delete_post(self, pid: str) -> Optional[dict[str, Any]]:
        """Cascade-delete a post and every comment it references.

        The post is first marked in ``posts:deleting`` (the SADD result is the
        claim, so a concurrent or repeated delete gets ``None``) and hidden from
        the index and slug lookup. Comments go next and the post hash last, so
        a crash part way leaves a mark that :meth:`sweep_deleting` finishes.
        """
        if not await self.redis.sadd(POSTS_DELETING, pid):
            return None
        data = await self.redis.hgetall(f"post:{pid}")
        if not data:
            await self.redis.srem(POSTS_DELETING, pid)
            return None
        data["comments"] = await self.redis.lrange(f"post:{pid}:comments", 0, -1)
        await self._finish_delete(pid, data)
        return data

    async def _finish_delete(self, pid: str, data: dict[str, Any]) -> None:
        await self.redis.zrem(POSTS_INDEX, pid)
        if data.get("slug"):
            await self.redis.delete(f"post:byslug:{data['slug']}")
        await self.delete_comments(data.get("comments", []))
        await self.redis.delete(f"post:{pid}", f"post:{pid}:comments")
        await self.redis.srem(POSTS_DELETING, pid)

    async def sweep_deleting(self) -> int:
        swept = 0
        for pid in await self.redis.smembers(POSTS_DELETING):
            data = await self.redis.hgetall(f"post:{pid}")
            data["comments"] = await self.redis.lrange(f"post:{pid}:comments", 0, -1)
            await self._finish_delete(pid, data)
            swept += 1
        if swept:
            logger.info("Finished %d interrupted post deletion(s)", swept)
        return swept

    # ---------- Comments ----------

    async def insert_comment(self, content: str, posted_by: str) -> dict[str, Any]:
        cid = new_id()
        doc = {
            "id": cid,
            "content": content,
            "posted_by": posted_by,
            "created": _now().isoformat(),
        }
        await self.redis.hset(f"comment:{cid}", mapping=doc)
        return doc

    async def find_comment(self, cid: str) -> Optional[dict[str, Any]]:
        data = await self.redis.hgetall(f"comment:{cid}")
        return data or None

    async def comment_exists(self, cid: str) -> bool:
        return bool(await self.redis.exists(f"comment:{cid}"))

    async def delete_comment(self, cid: str) -> int:
        return int(await self.redis.delete(f"comment:{cid}"))

    async def delete_comments(self, cids: Iterable[str]) -> int:
        keys = [f"comment:{cid}" for cid in cids]
        if not keys:
            return 0
        return int(await self.redis.delete(*keys))

    # ---------- Users ----------

    async def insert_user(self, username: str, password_hash: str, role: str) -> dict[str, Any]:
        uid = new_id()
        ok = await self.redis.set(f"user:byname:{username}", uid, nx=True)
        if not ok:
            raise Conflict("Username already exists")
        doc = {
            "id": uid,
            "username": username,
            "password_hash": password_hash,
            "role": role,
            "created_at": _now().isoformat(),
        }
        await self.redis.hset(f"user:{uid}", mapping=doc)
        return doc

    async def find_user_by_username(self, username: str) -> Optional[dict[str, Any]]:
        uid = await self.redis.get(f"user:byname:{username}")
        if not uid:
            return None
        data = await self.redis.hgetall(f"user:{uid}")
        return data or None

    async def usernames(self, uids: Iterable[str]) -> dict[str, str]:
        names: dict[str, str] = {}
        for uid in set(uids):
            data = await self.redis.hgetall(f"user:{uid}")
            if data:
                names[uid] = data.get("username", "")
        return names
