"""Groups: admin-created communities members can join.

Only ``active`` memberships count as group members (broadcasts included).
Admins can ban a member; the banned row is kept so the ban survives a re-join
attempt, and unbanning removes it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import Group, GroupMember, User
from aneti.errors import Forbidden, NotFound, ValidationError

logger = logging.getLogger(__name__)


async def get_group(db: AsyncSession, group_id: int) -> Group | None:
    result = await db.execute(select(Group).where(Group.id == group_id))
    return result.scalar_one_or_none()


async def create_group(db: AsyncSession, actor: User, name: str, description: str | None = None) -> Group:
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem criar grupos")
    name = name.strip()
    if not name:
        raise ValidationError("Nome do grupo é obrigatório")

    existing = await db.execute(select(Group.id).where(func.lower(Group.name) == name.lower()))
    if existing.scalar_one_or_none() is not None:
        raise ValidationError("Já existe um grupo com este nome")

    group = Group(
        name=name,
        description=description,
        is_active=True,
        created_by=actor.id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(group)
    await db.flush()
    logger.info("Group %d created by %d", group.id, actor.id)
    return group


async def join_group(db: AsyncSession, user: User, group_id: int) -> GroupMember:
    """Join as an active member. Joining twice returns the existing membership."""
    group = await get_group(db, group_id)
    if group is None or not group.is_active:
        raise NotFound(f"Grupo {group_id} não encontrado")

    result = await db.execute(
        select(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user.id)
    )
    membership = result.scalar_one_or_none()
    if membership is not None:
        if membership.status == "banned":
            raise Forbidden("Você foi banido deste grupo")
        return membership

    membership = GroupMember(
        group_id=group_id,
        user_id=user.id,
        role="member",
        status="active",
        joined_at=datetime.now(timezone.utc),
    )
    db.add(membership)
    await db.flush()
    return membership


async def list_groups(db: AsyncSession) -> list[tuple[Group, int]]:
    """Active groups with their active member counts."""
    member_count = (
        select(func.count())
        .select_from(GroupMember)
        .where(GroupMember.group_id == Group.id, GroupMember.status == "active")
        .correlate(Group)
        .scalar_subquery()
    )
    result = await db.execute(
        select(Group, member_count).where(Group.is_active.is_(True)).order_by(Group.name)
    )
    return [(group, count) for group, count in result.all()]


def _require_admin(actor: User) -> None:
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem banir membros de grupos")


async def ban_member(db: AsyncSession, actor: User, group_id: int, user_id: int) -> GroupMember:
    """
    Mark ``user_id`` banned in the group, creating the row if they never joined.

    A banned member stops counting as a member and cannot re-join.
    """
    _require_admin(actor)
    group = await get_group(db, group_id)
    if group is None:
        raise NotFound(f"Grupo {group_id} não encontrado")
    if user_id == actor.id:
        raise ValidationError("Você não pode banir a si mesmo")
    if await db.get(User, user_id) is None:
        raise NotFound(f"Usuário {user_id} não encontrado")

    result = await db.execute(
        select(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        membership = GroupMember(group_id=group_id, user_id=user_id, role="member", status="banned")
        db.add(membership)
    else:
        membership.status = "banned"
    await db.flush()
    logger.info("User %d banned from group %d by %d", user_id, group_id, actor.id)
    return membership


async def unban_member(db: AsyncSession, actor: User, group_id: int, user_id: int) -> None:
    """Lift a ban by dropping the banned row; the member may join again."""
    _require_admin(actor)
    group = await get_group(db, group_id)
    if group is None:
        raise NotFound(f"Grupo {group_id} não encontrado")

    result = await db.execute(
        select(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
            GroupMember.status == "banned",
        )
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        raise NotFound("Este usuário não está banido do grupo")
    await db.delete(membership)
    await db.flush()
    logger.info("User %d unbanned from group %d by %d", user_id, group_id, actor.id)
