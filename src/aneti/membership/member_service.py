"""
Admin view of the member roster: listing, lookup and (de)activation.

Deactivation is the association's ban: the account stays, with its
application and history, but ``get_current_user`` and login refuse it and
broadcasts skip it unless ``include_inactive`` is set. Each change appends a
``user`` ReviewEvent so the moderation trail sits with the other reviews.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import User
from aneti.errors import Forbidden, NotFound, ValidationError
from aneti.membership.application_service import record_review_event

logger = structlog.get_logger()


def _require_admin(actor: User) -> None:
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem gerenciar membros")


async def list_members(
    db: AsyncSession,
    actor: User,
    *,
    is_active: bool | None = None,
    is_approved: bool | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[User], int]:
    """Member accounts (admins excluded), newest first."""
    _require_admin(actor)
    filters = [User.role == "member"]
    if is_active is not None:
        filters.append(User.is_active.is_(is_active))
    if is_approved is not None:
        filters.append(User.is_approved.is_(is_approved))

    total = (await db.execute(select(func.count()).select_from(User).where(*filters))).scalar_one()
    result = await db.execute(
        select(User)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def get_member(db: AsyncSession, actor: User, user_id: int) -> User:
    _require_admin(actor)
    member = await db.get(User, user_id)
    if member is None or member.is_admin:
        raise NotFound(f"Membro {user_id} não encontrado")
    return member


async def set_member_active(
    db: AsyncSession,
    actor: User,
    user_id: int,
    active: bool,
    reason: str | None = None,
) -> User:
    """
    Deactivate (``active=False``) or reactivate a member account.

    Setting the state the account already has is a no-op: nothing is written
    and no event is recorded.

    Raises:
        Forbidden: actor is not an admin.
        NotFound: unknown user, or the target is an administrator.
        ValidationError: an admin tried to deactivate their own account.
    """
    if actor.id == user_id and not active:
        raise ValidationError("Você não pode desativar sua própria conta")
    member = await get_member(db, actor, user_id)
    if member.is_active == active:
        return member

    from_status = "inactive" if active else "active"
    to_status = "active" if active else "inactive"
    member.is_active = active
    member.updated_at = datetime.now(timezone.utc)
    await db.flush()

    reason = (reason or "").strip() or None
    action = "reactivate" if active else "deactivate"
    await record_review_event(db, "user", member.id, actor.id, action, from_status, to_status, reason)
    logger.info("member_" + action + "d", user_id=member.id, actor_id=actor.id)
    return member
