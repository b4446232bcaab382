from __future__ import annotations

from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from ....core.pipeline import MutationPipeline
from ....core.security import optional_token
from ....schemas.posts import (
    CommentCreate,
    CommentPublic,
    PostCreate,
    PostDetail,
    PostPublic,
    PostSummary,
    PostUpdate,
    UserRef,
)
from ...deps import get_pipeline


router = APIRouter()


def _post_public(doc: dict[str, Any]) -> PostPublic:
    return PostPublic(
        id=doc["id"],
        slug=doc.get("slug", ""),
        title=doc.get("title", ""),
        body=doc.get("body", ""),
        comments=list(doc.get("comments", [])),
        postedBy=doc.get("posted_by", ""),
        created=doc.get("created", ""),
    )


@router.get("", response_model=List[PostSummary])
async def list_posts(pipeline: MutationPipeline = Depends(get_pipeline)) -> List[PostSummary]:
    posts = await pipeline.list_posts()
    return [
        PostSummary(
            id=p["id"],
            slug=p.get("slug", ""),
            title=p.get("title", ""),
            postedBy=UserRef(**p["posted_by"]),
            created=p.get("created", ""),
        )
        for p in posts
    ]


@router.get("/{post_id}", response_model=List[PostDetail])
async def get_post(post_id: str, pipeline: MutationPipeline = Depends(get_pipeline)) -> List[PostDetail]:
    found = await pipeline.get_post(post_id)
    if not found:
        raise HTTPException(status_code=404, detail="Post not found")
    return [
        PostDetail(
            id=p["id"],
            slug=p.get("slug", ""),
            title=p.get("title", ""),
            body=p.get("body", ""),
            comments=[
                CommentPublic(
                    id=c["id"],
                    content=c.get("content", ""),
                    postedBy=UserRef(**c["posted_by"]),
                    created=c.get("created", ""),
                )
                for c in p["comments"]
            ],
            postedBy=UserRef(**p["posted_by"]),
            created=p.get("created", ""),
        )
        for p in found
    ]


@router.post("", response_model=PostPublic)
async def create_post(
    payload: PostCreate,
    token: Optional[str] = Depends(optional_token),
    pipeline: MutationPipeline = Depends(get_pipeline),
) -> PostPublic:
    post = await pipeline.create_post(token, payload.title, payload.body)
    return _post_public(post)


@router.post("/{post_id}/comments", response_model=PostPublic)
async def create_comment(
    post_id: str,
    payload: CommentCreate,
    token: Optional[str] = Depends(optional_token),
    pipeline: MutationPipeline = Depends(get_pipeline),
) -> PostPublic:
    post = await pipeline.create_comment(token, post_id, payload.content)
    return _post_public(post)


@router.put("/{post_id}", response_model=PostPublic)
async def edit_post(
    post_id: str,
    payload: PostUpdate,
    token: Optional[str] = Depends(optional_token),
    pipeline: MutationPipeline = Depends(get_pipeline),
) -> PostPublic:
    post = await pipeline.edit_post(token, post_id, payload.title, payload.body)
    return _post_public(post)


@router.delete("/{post_id}", status_code=202)
async def delete_post(
    post_id: str,
    token: Optional[str] = Depends(optional_token),
    pipeline: MutationPipeline = Depends(get_pipeline),
) -> Response:
    await pipeline.delete_post(token, post_id)
    return Response(status_code=202)


@router.delete("/{post_id}/comments/{comment_id}", status_code=202)
async def delete_comment(
    post_id: str,
    comment_id: str,
    token: Optional[str] = Depends(optional_token),
    pipeline: MutationPipeline = Depends(get_pipeline),
) -> Response:
    await pipeline.delete_comment(token, post_id, comment_id)
    return Response(status_code=202)
