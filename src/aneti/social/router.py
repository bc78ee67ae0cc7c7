"""Social API endpoints.

Connections (5), Groups (5), Feed (4).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.auth.dependencies import get_current_user
from aneti.database import get_session
from aneti.db.models import User
from aneti.social.connection_service import (
    accept_request,
    list_connections,
    list_pending_requests,
    reject_request,
    send_request,
)
from aneti.social.feed_service import add_comment, create_post, list_posts, toggle_like
from aneti.social.group_service import ban_member, create_group, join_group, list_groups, unban_member
from aneti.social.schemas import (
    CommentResponse,
    ConnectionRequestCreate,
    ConnectionRequestResponse,
    CreateCommentRequest,
    CreateGroupRequest,
    CreatePostRequest,
    GroupMembershipResponse,
    GroupResponse,
    LikeResponse,
    MemberSummary,
    PostListResponse,
    PostResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Social"])


# ── Connections ──


@router.post("/connections", response_model=ConnectionRequestResponse, status_code=201)
async def create_connection_request(
    body: ConnectionRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    request = await send_request(db, user, body.receiver_id)
    await db.commit()
    return ConnectionRequestResponse.model_validate(request)


@router.post("/connections/{request_id}/accept", response_model=ConnectionRequestResponse)
async def accept_connection(
    request_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    request = await accept_request(db, user, request_id)
    await db.commit()
    return ConnectionRequestResponse.model_validate(request)


@router.post("/connections/{request_id}/reject", response_model=ConnectionRequestResponse)
async def reject_connection(
    request_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    request = await reject_request(db, user, request_id)
    await db.commit()
    return ConnectionRequestResponse.model_validate(request)


@router.get("/connections", response_model=list[MemberSummary])
async def my_connections(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    members = await list_connections(db, user.id)
    return [MemberSummary.model_validate(m) for m in members]


@router.get("/connections/pending", response_model=list[ConnectionRequestResponse])
async def pending_connections(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    requests = await list_pending_requests(db, user.id)
    return [ConnectionRequestResponse.model_validate(r) for r in requests]


# ── Groups ──


@router.get("/groups", response_model=list[GroupResponse])
async def get_groups(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    groups = await list_groups(db)
    return [
        GroupResponse(id=g.id, name=g.name, description=g.description, member_count=count)
        for g, count in groups
    ]


@router.post("/groups", response_model=GroupResponse, status_code=201)
async def post_group(
    body: CreateGroupRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    group = await create_group(db, user, body.name, body.description)
    await db.commit()
    return GroupResponse(id=group.id, name=group.name, description=group.description, member_count=0)


@router.post("/groups/{group_id}/join", response_model=GroupMembershipResponse)
async def join(
    group_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    membership = await join_group(db, user, group_id)
    await db.commit()
    return GroupMembershipResponse.model_validate(membership)


@router.post("/groups/{group_id}/members/{user_id}/ban", response_model=GroupMembershipResponse)
async def ban(
    group_id: int,
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    membership = await ban_member(db, user, group_id, user_id)
    await db.commit()
    return GroupMembershipResponse.model_validate(membership)


@router.post("/groups/{group_id}/members/{user_id}/unban", status_code=204)
async def unban(
    group_id: int,
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await unban_member(db, user, group_id, user_id)
    await db.commit()
    return Response(status_code=204)


# ── Feed ──


@router.get("/posts", response_model=PostListResponse)
async def get_posts(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows, total = await list_posts(db, page, per_page)
    return PostListResponse(
        posts=[
            PostResponse(
                id=post.id,
                author_id=post.author_id,
                author_name=author.full_name,
                content=post.content,
                like_count=post.like_count,
                comment_count=post.comment_count,
                created_at=post.created_at,
            )
            for post, author in rows
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/posts", response_model=PostResponse, status_code=201)
async def post_create(
    body: CreatePostRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    post = await create_post(db, user, body.content)
    await db.commit()
    return PostResponse(
        id=post.id,
        author_id=post.author_id,
        author_name=user.full_name,
        content=post.content,
        like_count=post.like_count,
        comment_count=post.comment_count,
        created_at=post.created_at,
    )


@router.post("/posts/{post_id}/like", response_model=LikeResponse)
async def like_post(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Toggle the caller's like."""
    post, liked = await toggle_like(db, user, post_id)
    await db.commit()
    return LikeResponse(post_id=post.id, liked=liked, like_count=post.like_count)


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=201)
async def comment_post(
    post_id: int,
    body: CreateCommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    comment = await add_comment(db, user, post_id, body.content)
    await db.commit()
    return CommentResponse.model_validate(comment)
