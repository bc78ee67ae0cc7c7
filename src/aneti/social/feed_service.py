"""Member feed: posts, likes, comments and @mentions.

Likes and comments notify the post author; ``@username`` in a post or comment
notifies the mentioned member. Self-notifications are dropped by the
notification layer, so nothing here checks for them.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import Post, PostComment, PostLike, User
from aneti.errors import NotFound, ValidationError
from aneti.social.notification_service import notify_comment, notify_like, notify_mention

logger = logging.getLogger(__name__)

MENTION_RE = re.compile(r"@(\w+)")
MAX_CONTENT_LENGTH = 5000


def extract_mentions(content: str) -> list[str]:
    """Lowercased usernames mentioned in ``content``, first occurrence order, no repeats."""
    seen: dict[str, None] = {}
    for match in MENTION_RE.finditer(content):
        seen.setdefault(match.group(1).lower(), None)
    return list(seen)


def _clean(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("O conteúdo não pode ser vazio")
    if len(content) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"O conteúdo deve ter no máximo {MAX_CONTENT_LENGTH} caracteres")
    return content


async def _notify_mentions(
    db: AsyncSession, author: User, content: str, content_type: str, content_id: int, post_id: int
) -> int:
    usernames = extract_mentions(content)
    if not usernames:
        return 0
    result = await db.execute(
        select(User.id).where(func.lower(User.username).in_(usernames), User.is_active.is_(True))
    )
    sent = 0
    for (user_id,) in result.all():
        if await notify_mention(db, user_id, author.id, author.full_name, content_type, content_id, post_id):
            sent += 1
    return sent


async def get_post(db: AsyncSession, post_id: int) -> Post:
    result = await db.execute(select(Post).where(Post.id == post_id))
    post = result.scalar_one_or_none()
    if post is None:
        raise NotFound(f"Publicação {post_id} não encontrada")
    return post


async def create_post(db: AsyncSession, author: User, content: str) -> Post:
    post = Post(
        author_id=author.id,
        content=_clean(content),
        like_count=0,
        comment_count=0,
        created_at=datetime.now(timezone.utc),
    )
    db.add(post)
    await db.flush()

    mentioned = await _notify_mentions(db, author, post.content, "post", post.id, post.id)
    logger.info("Post %d by %d (%d mentions)", post.id, author.id, mentioned)
    return post


async def list_posts(db: AsyncSession, page: int = 1, per_page: int = 20) -> tuple[list[tuple[Post, User]], int]:
    """Posts with their authors, newest first."""
    total_result = await db.execute(select(func.count()).select_from(Post))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Post, User)
        .join(User, User.id == Post.author_id)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return [(post, user) for post, user in result.all()], total


async def toggle_like(db: AsyncSession, user: User, post_id: int) -> tuple[Post, bool]:
    """Like or un-like. Returns the post and whether it is now liked.

    Every like notifies the author again, so un-like then re-like produces a
    second notification.
    """
    post = await get_post(db, post_id)
    existing = await db.execute(
        select(PostLike.id).where(PostLike.post_id == post_id, PostLike.user_id == user.id)
    )
    like_id = existing.scalar_one_or_none()

    if like_id is not None:
        await db.execute(delete(PostLike).where(PostLike.id == like_id))
        post.like_count = max(0, post.like_count - 1)
        await db.flush()
        return post, False

    db.add(PostLike(post_id=post_id, user_id=user.id, created_at=datetime.now(timezone.utc)))
    post.like_count += 1
    await db.flush()

    await notify_like(db, post.id, post.author_id, user.id, user.full_name)
    return post, True


async def add_comment(db: AsyncSession, user: User, post_id: int, content: str) -> PostComment:
    post = await get_post(db, post_id)
    comment = PostComment(
        post_id=post.id,
        author_id=user.id,
        content=_clean(content),
        created_at=datetime.now(timezone.utc),
    )
    db.add(comment)
    post.comment_count += 1
    await db.flush()

    await notify_comment(db, post.id, post.author_id, user.id, user.full_name)
    await _notify_mentions(db, user, comment.content, "comment", comment.id, post.id)
    return comment
