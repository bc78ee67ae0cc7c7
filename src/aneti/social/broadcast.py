"""Admin broadcast: one notification fanned out to a resolved set of members.

The target is a small tagged union rather than a bare string so every kind of
audience is handled by one exhaustive ``match``. Recipients are paged by user
id in batches, and each recipient's row is written inside its own savepoint:
a failed write is rolled back, logged as a DispatchFailure and skipped, and
the batch carries on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.config import get_settings
from aneti.db.models import Group, GroupMember, MembershipPlan, User
from aneti.errors import DispatchFailure, Forbidden, ValidationError
from aneti.social import notification_service

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100


@dataclass(frozen=True)
class AllMembers:
    pass


@dataclass(frozen=True)
class ApprovedMembers:
    pass


@dataclass(frozen=True)
class GroupMembers:
    group_id: int


@dataclass(frozen=True)
class PlanMembers:
    plan_id: int


BroadcastTarget = AllMembers | ApprovedMembers | GroupMembers | PlanMembers

TARGET_TYPES = ("all_members", "approved_members", "group_members", "plan_members")


@dataclass(frozen=True)
class BroadcastResult:
    sent_to_count: int
    failed_count: int = 0


def parse_target(target_type: str, target_value: str | int | None = None) -> BroadcastTarget:
    """Build a target from the wire form ``(target_type, target_value)``.

    Raises:
        ValidationError: unknown type, or a group/plan target without a numeric id.
    """
    if target_type == "all_members":
        return AllMembers()
    if target_type == "approved_members":
        return ApprovedMembers()
    if target_type in ("group_members", "plan_members"):
        if target_value is None or str(target_value).strip() == "":
            raise ValidationError("Destino obrigatório para este tipo de envio")
        try:
            entity_id = int(target_value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Destino inválido: {target_value}") from e
        if target_type == "group_members":
            return GroupMembers(entity_id)
        return PlanMembers(entity_id)
    raise ValidationError(f"Tipo de destino inválido: {target_type}. Use um de {list(TARGET_TYPES)}")


async def _recipient_query(db: AsyncSession, target: BroadcastTarget, include_inactive: bool) -> Select:
    """Select of recipient user ids for ``target``. Admin accounts are never recipients."""
    query = select(User.id).where(User.role == "member")
    if not include_inactive:
        query = query.where(User.is_active.is_(True))

    match target:
        case AllMembers():
            pass
        case ApprovedMembers():
            query = query.where(User.is_approved.is_(True))
        case GroupMembers(group_id=group_id):
            group = await db.get(Group, group_id)
            if group is None:
                raise ValidationError(f"Grupo {group_id} não encontrado")
            query = query.join(GroupMember, GroupMember.user_id == User.id).where(
                GroupMember.group_id == group_id,
                GroupMember.status == "active",
            )
        case PlanMembers(plan_id=plan_id):
            plan = await db.get(MembershipPlan, plan_id)
            if plan is None:
                raise ValidationError(f"Plano {plan_id} não encontrado")
            query = query.where(User.current_plan_id == plan_id)

    return query


async def resolve_recipients(
    db: AsyncSession, target: BroadcastTarget, include_inactive: bool = False
) -> list[int]:
    """All recipient ids for ``target``, ascending."""
    query = await _recipient_query(db, target, include_inactive)
    result = await db.execute(query.order_by(User.id))
    return [row[0] for row in result]


async def broadcast(
    db: AsyncSession,
    admin: User,
    title: str,
    message: str,
    target: BroadcastTarget,
    priority: str = "normal",
    action_url: str | None = None,
    include_inactive: bool = False,
) -> BroadcastResult:
    """Create one ``admin_broadcast`` notification per resolved recipient.

    Raises:
        Forbidden: ``admin`` is not an administrator.
        ValidationError: empty title/message, or unknown group/plan.
    """
    if not admin.is_admin:
        raise Forbidden("Apenas administradores podem enviar notificações em massa")
    title = title.strip()
    message = message.strip()
    if not title or not message:
        raise ValidationError("Título e mensagem são obrigatórios")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"O título deve ter no máximo {MAX_TITLE_LENGTH} caracteres")
    if priority not in notification_service.PRIORITIES:
        raise ValidationError(f"Prioridade inválida: {priority}")

    admin_id = admin.id
    batch_size = get_settings().broadcast_batch_size
    query = await _recipient_query(db, target, include_inactive)

    sent = 0
    failed = 0
    last_id = 0
    while True:
        result = await db.execute(query.where(User.id > last_id).order_by(User.id).limit(batch_size))
        batch = [row[0] for row in result]
        if not batch:
            break

        for recipient_id in batch:
            try:
                async with db.begin_nested():
                    await notification_service.create_notification(
                        db,
                        recipient_id,
                        "admin_broadcast",
                        title,
                        message,
                        action_url=action_url,
                        related_entity_type="broadcast",
                        actor_id=admin_id,
                        priority=priority,
                    )
            except Exception as e:
                failure = DispatchFailure(recipient_id, e)
                logger.warning("Broadcast dispatch failed: %s", failure, exc_info=True)
                failed += 1
            else:
                sent += 1

        last_id = batch[-1]
        logger.debug("Broadcast batch done: up to user %d, sent=%d failed=%d", last_id, sent, failed)
        if len(batch) < batch_size:
            break

    logger.info(
        "Broadcast by admin %d to %s: sent=%d failed=%d", admin_id, target, sent, failed
    )
    return BroadcastResult(sent_to_count=sent, failed_count=failed)
