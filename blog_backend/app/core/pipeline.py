from __future__ import annotations

import logging
from typing import Any, Optional

from .errors import Conflict, Forbidden, NotFoundAtMutation, StorageFailure, Unauthenticated, ValidationFailure
from .store import ContentStore
from .tokens import Identity, TokenVerifier
from .validation import Exists, FieldRules, IdShape, Length, Validator

logger = logging.getLogger(__name__)


class MutationPipeline:
    """Validate, then verify, then authorize, then mutate.

    Every write follows that order: no token is looked at until all field and
    existence rules have passed, and the store is only touched once the
    caller's role is known to be sufficient.
    """

    def __init__(self, store: ContentStore, verifier: TokenVerifier) -> None:
        self.store = store
        self.verifier = verifier

        self.create_post_rules = Validator(
            FieldRules("title", escape=True, rules=[Length(1, 60, "Invalid title length")]),
            FieldRules("body", escape=True, rules=[Length(0, 1000, "Invalid body length")]),
        )
        self.create_comment_rules = Validator(
            FieldRules("postId", "params", rules=[Exists(store.post_key_exists, "Post not found")]),
            FieldRules("content", rules=[Length(1, 500, "Invalid length")]),
            only_first=True,
        )
        self.edit_post_rules = Validator(
            FieldRules("postId", "params", rules=[Exists(store.post_key_exists, "Post not found")]),
            FieldRules("title", escape=True, rules=[Length(1, 60, "Invalid title length")]),
            FieldRules("body", escape=True, rules=[Length(1, 1000, "Invalid body length")]),
        )
        self.delete_post_rules = Validator(
            FieldRules(
                "postId",
                "params",
                rules=[IdShape("Post not found"), Exists(store.post_id_exists, "Post not found")],
            ),
        )
        self.delete_comment_rules = Validator(
            FieldRules(
                "postId",
                "params",
                rules=[IdShape("Post not found"), Exists(store.post_id_exists, "Post not found")],
            ),
            FieldRules(
                "commentId",
                "params",
                rules=[IdShape("Comment not found"), Exists(store.comment_exists, "Comment not found")],
            ),
            only_first=True,
        )

    async def _check(self, operation: str, validator: Validator, values: dict[str, Any]) -> None:
        violations = await validator.validate(values)
        if violations:
            logger.info("%s rejected: %d violation(s)", operation, len(violations))
            raise ValidationFailure(violations)

    def _authorize(self, operation: str, token: Optional[str], admin_only: bool) -> Identity:
        try:
            identity = self.verifier.verify(token)
        except Unauthenticated as exc:
            logger.info("%s rejected: %s", operation, type(exc).__name__)
            raise
        if admin_only and not identity.is_admin:
            logger.info("%s rejected: role %s is not admin", operation, identity.role)
            raise Forbidden("Only admins may do this")
        return identity

    # ---------- Writes ----------

    async def create_post(self, token: Optional[str], title: Any, body: Any) -> dict[str, Any]:
        values = {"title": title, "body": body}
        await self._check("create_post", self.create_post_rules, values)
        identity = self._authorize("create_post", token, admin_only=True)
        try:
            post = await self.store.insert_post(values["title"], values["body"], identity.subject_id)
        except Conflict:
            raise
        except Exception as exc:
            logger.warning("create_post failed in store: %s", exc)
            raise StorageFailure()
        if not post:
            raise StorageFailure()
        return post

    async def create_comment(self, token: Optional[str], post_key: str, content: Any) -> dict[str, Any]:
        values = {"postId": post_key, "content": content}
        await self._check("create_comment", self.create_comment_rules, values)
        identity = self._authorize("create_comment", token, admin_only=False)
        try:
            comment = await self.store.insert_comment(values["content"], identity.subject_id)
        except Exception as exc:
            logger.warning("create_comment failed inserting comment: %s", exc)
            raise StorageFailure()

        try:
            post = await self.store.push_comment(values["postId"], comment["id"])
        except Exception as exc:
            logger.warning("create_comment failed linking comment %s: %s", comment["id"], exc)
            post = None
        if not post:
            # the comment is unreferenced; remove it rather than leave an orphan
            logger.warning("Removing orphaned comment %s", comment["id"])
            try:
                await self.store.delete_comment(comment["id"])
            except Exception as exc:
                logger.warning("Orphaned comment %s left in store: %s", comment["id"], exc)
            raise StorageFailure()
        return post

    async def edit_post(self, token: Optional[str], post_key: str, title: Any, body: Any) -> dict[str, Any]:
        values = {"postId": post_key, "title": title, "body": body}
        await self._check("edit_post", self.edit_post_rules, values)
        self._authorize("edit_post", token, admin_only=True)
        try:
            post = await self.store.update_post(values["postId"], values["title"], values["body"])
        except Exception as exc:
            logger.warning("edit_post failed in store: %s", exc)
            raise StorageFailure()
        if not post:
            raise StorageFailure()
        return post

    async def delete_post(self, token: Optional[str], post_id: str) -> dict[str, Any]:
        values = {"postId": post_id}
        await self._check("delete_post", self.delete_post_rules, values)
        self._authorize("delete_post", token, admin_only=True)
        try:
            deleted = await self.store.delete_post(values["postId"])
        except Exception as exc:
            logger.warning("delete_post %s failed in store: %s", post_id, exc)
            raise StorageFailure()
        if not deleted:
            raise StorageFailure()
        return deleted

    async def delete_comment(self, token: Optional[str], post_id: str, comment_id: str) -> None:
        values = {"postId": post_id, "commentId": comment_id}
        await self._check("delete_comment", self.delete_comment_rules, values)
        self._authorize("delete_comment", token, admin_only=True)
        try:
            modified = await self.store.pull_comment(values["postId"], values["commentId"])
        except Exception as exc:
            logger.warning("delete_comment failed in store: %s", exc)
            raise StorageFailure()
        if not modified:
            raise NotFoundAtMutation("Comment not found in post")
        try:
            await self.store.delete_comment(values["commentId"])
        except Exception as exc:
            logger.warning("delete_comment %s unlinked but not removed: %s", comment_id, exc)
            raise StorageFailure()

    # ---------- Reads ----------

    async def list_posts(self) -> list[dict[str, Any]]:
        posts = await self.store.find_posts()
        names = await self.store.usernames(p.get("posted_by", "") for p in posts)
        for post in posts:
            uid = post.get("posted_by", "")
            post["posted_by"] = {"id": uid, "username": names.get(uid)}
        return posts

    async def get_post(self, post_key: str) -> list[dict[str, Any]]:
        post = await self.store.find_post_by_key(post_key)
        if not post:
            return []
        comments: list[dict[str, Any]] = []
        for cid in post["comments"]:
            comment = await self.store.find_comment(cid)
            if comment:
                comments.append(comment)
        names = await self.store.usernames([post.get("posted_by", "")] + [c.get("posted_by", "") for c in comments])
        for doc in [post] + comments:
            uid = doc.get("posted_by", "")
            doc["posted_by"] = {"id": uid, "username": names.get(uid)}
        post["comments"] = comments
        return [post]
