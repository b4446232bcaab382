from __future__ import annotations

from pydantic import BaseModel

# Request bodies carry no length constraints: the pipeline escapes first and
# checks lengths afterwards, and reports violations in its own envelope.


class PostCreate(BaseModel):
    title: str = ""
    body: str = ""


class PostUpdate(BaseModel):
    title: str = ""
    body: str = ""


class CommentCreate(BaseModel):
    content: str = ""


class UserRef(BaseModel):
    id: str
    username: str | None = None


class PostPublic(BaseModel):
    id: str
    slug: str
    title: str
    body: str
    comments: list[str]
    postedBy: str
    created: str


class PostSummary(BaseModel):
    id: str
    slug: str
    title: str
    postedBy: UserRef
    created: str


class CommentPublic(BaseModel):
    id: str
    content: str
    postedBy: UserRef
    created: str


class PostDetail(BaseModel):
    id: str
    slug: str
    title: str
    body: str
    comments: list[CommentPublic]
    postedBy: UserRef
    created: str
