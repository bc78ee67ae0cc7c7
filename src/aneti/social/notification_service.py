"""Notification creation and reading.

Every domain event that concerns a member ends up here as one row in
``notifications``. Rows are written in the caller's session and flushed, never
committed, so the notification lands in the same transaction as the state
change that caused it.

Types:
  social   like, comment, post_mention, comment_mention, message,
           connection_request, connection_accepted
  outcome  application_approved, application_rejected, documents_requested,
           plan_change_approved, plan_change_rejected, welcome
  admin    admin_broadcast
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import Notification
from aneti.errors import ValidationError

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = frozenset({
    "like",
    "comment",
    "connection_request",
    "connection_accepted",
    "message",
    "application_approved",
    "application_rejected",
    "documents_requested",
    "post_mention",
    "comment_mention",
    "welcome",
    "plan_change_approved",
    "plan_change_rejected",
    "admin_broadcast",
})

# Kinds that are never delivered to the member who triggered them.
SELF_SUPPRESSED_TYPES = frozenset({"like", "comment", "post_mention", "comment_mention", "message"})

PRIORITIES = frozenset({"low", "normal", "high"})


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type_: str,
    title: str,
    message: str,
    action_url: str | None = None,
    related_entity_id: int | str | None = None,
    related_entity_type: str | None = None,
    actor_id: int | None = None,
    priority: str = "normal",
) -> Notification | None:
    """Persist a notification for ``user_id``.

    Returns None without writing anything when a social kind would notify the
    actor about their own action.
    """
    if type_ not in NOTIFICATION_TYPES:
        raise ValidationError(f"Invalid notification type: {type_}")
    if priority not in PRIORITIES:
        raise ValidationError(f"Invalid priority: {priority}")

    if type_ in SELF_SUPPRESSED_TYPES and actor_id is not None and actor_id == user_id:
        logger.debug("Suppressed %s notification to its own actor %d", type_, user_id)
        return None

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        action_url=action_url,
        related_entity_id=str(related_entity_id) if related_entity_id is not None else None,
        related_entity_type=related_entity_type,
        actor_id=actor_id,
        priority=priority,
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()
    return notification


# ---------------------------------------------------------------------------
# Point-to-point (social)
# ---------------------------------------------------------------------------


async def notify_like(
    db: AsyncSession, post_id: int, post_author_id: int, liker_id: int, liker_name: str
) -> Notification | None:
    return await create_notification(
        db,
        post_author_id,
        "like",
        "Nova curtida",
        f"{liker_name} curtiu sua publicação",
        action_url=f"/posts/{post_id}",
        related_entity_id=post_id,
        related_entity_type="post",
        actor_id=liker_id,
    )


async def notify_comment(
    db: AsyncSession, post_id: int, post_author_id: int, commenter_id: int, commenter_name: str
) -> Notification | None:
    return await create_notification(
        db,
        post_author_id,
        "comment",
        "Novo comentário",
        f"{commenter_name} comentou em sua publicação",
        action_url=f"/posts/{post_id}",
        related_entity_id=post_id,
        related_entity_type="post",
        actor_id=commenter_id,
    )


async def notify_connection_request(
    db: AsyncSession, receiver_id: int, requester_id: int, requester_name: str
) -> Notification | None:
    return await create_notification(
        db,
        receiver_id,
        "connection_request",
        "Solicitação de conexão",
        f"{requester_name} enviou uma solicitação de conexão",
        action_url="/connections/requests",
        related_entity_id=requester_id,
        related_entity_type="user",
        actor_id=requester_id,
    )


async def notify_connection_accepted(
    db: AsyncSession, requester_id: int, accepter_id: int, accepter_name: str
) -> Notification | None:
    return await create_notification(
        db,
        requester_id,
        "connection_accepted",
        "Conexão aceita",
        f"{accepter_name} aceitou sua solicitação de conexão",
        action_url=f"/profile/{accepter_id}",
        related_entity_id=accepter_id,
        related_entity_type="user",
        actor_id=accepter_id,
    )


async def notify_message(
    db: AsyncSession,
    conversation_id: int | str,
    receiver_id: int,
    sender_id: int,
    sender_name: str,
    conversation_name: str | None = None,
) -> Notification | None:
    if conversation_name:
        message = f"{sender_name} enviou uma mensagem em {conversation_name}"
    else:
        message = f"{sender_name} enviou uma mensagem"
    return await create_notification(
        db,
        receiver_id,
        "message",
        "Nova mensagem",
        message,
        action_url=f"/chat/{conversation_id}",
        related_entity_id=conversation_id,
        related_entity_type="conversation",
        actor_id=sender_id,
    )


async def notify_mention(
    db: AsyncSession,
    mentioned_user_id: int,
    mentioner_id: int,
    mentioner_name: str,
    content_type: str,
    content_id: int,
    post_id: int,
) -> Notification | None:
    """Mention in a post (``content_type="post"``) or a comment (``"comment"``)."""
    if content_type == "post":
        type_, where = "post_mention", "em uma publicação"
    elif content_type == "comment":
        type_, where = "comment_mention", "em um comentário"
    else:
        raise ValidationError(f"Invalid mention content type: {content_type}")
    return await create_notification(
        db,
        mentioned_user_id,
        type_,
        "Você foi mencionado",
        f"{mentioner_name} mencionou você {where}",
        action_url=f"/posts/{post_id}",
        related_entity_id=content_id,
        related_entity_type=content_type,
        actor_id=mentioner_id,
    )


# ---------------------------------------------------------------------------
# Outcomes (system-originated, no actor)
# ---------------------------------------------------------------------------


async def notify_application_approved(
    db: AsyncSession, applicant_id: int, plan_name: str, application_id: int | None = None
) -> Notification | None:
    return await create_notification(
        db,
        applicant_id,
        "application_approved",
        "Associação aprovada",
        f"Sua solicitação de associação ao plano {plan_name} foi aprovada!",
        action_url="/profile",
        related_entity_id=application_id,
        related_entity_type="application",
    )


async def notify_application_rejected(
    db: AsyncSession,
    applicant_id: int,
    plan_name: str,
    reason: str | None = None,
    application_id: int | None = None,
) -> Notification | None:
    if reason:
        message = f"Sua solicitação de associação ao plano {plan_name} foi rejeitada: {reason}"
    else:
        message = f"Sua solicitação de associação ao plano {plan_name} foi rejeitada"
    return await create_notification(
        db,
        applicant_id,
        "application_rejected",
        "Associação rejeitada",
        message,
        action_url="/applications",
        related_entity_id=application_id,
        related_entity_type="application",
    )


async def notify_documents_requested(
    db: AsyncSession,
    applicant_id: int,
    plan_name: str,
    request_message: str,
    application_id: int | None = None,
) -> Notification | None:
    return await create_notification(
        db,
        applicant_id,
        "documents_requested",
        "Documentos solicitados",
        f"Sua solicitação de associação ao plano {plan_name} precisa de documentos adicionais: {request_message}",
        action_url="/applications",
        related_entity_id=application_id,
        related_entity_type="application",
        priority="high",
    )


async def notify_plan_change_approved(
    db: AsyncSession, user_id: int, plan_name: str, request_id: int | None = None
) -> Notification | None:
    return await create_notification(
        db,
        user_id,
        "plan_change_approved",
        "Mudança de plano aprovada",
        f"Sua solicitação de mudança para o plano {plan_name} foi aprovada!",
        action_url="/profile",
        related_entity_id=request_id,
        related_entity_type="plan_change_request",
    )


async def notify_plan_change_rejected(
    db: AsyncSession,
    user_id: int,
    plan_name: str,
    notes: str | None = None,
    request_id: int | None = None,
) -> Notification | None:
    message = f"Sua solicitação de mudança para o plano {plan_name} foi rejeitada"
    if notes:
        message = f"{message}: {notes}"
    return await create_notification(
        db,
        user_id,
        "plan_change_rejected",
        "Mudança de plano rejeitada",
        message,
        action_url="/profile",
        related_entity_id=request_id,
        related_entity_type="plan_change_request",
    )


async def notify_welcome(db: AsyncSession, user_id: int) -> Notification | None:
    return await create_notification(
        db,
        user_id,
        "welcome",
        "Bem-vindo à ANETI!",
        "Seja bem-vindo à Associação Nacional dos Especialistas em TI. "
        "Complete seu perfil para começar a se conectar com outros profissionais.",
        action_url="/profile/edit",
        related_entity_type="system",
    )


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    """Get user's notifications (paginated, most recent first)."""
    offset = (page - 1) * per_page

    filters = [Notification.user_id == user_id]
    if unread_only:
        filters.append(Notification.read_at.is_(None))

    total_result = await db.execute(select(func.count()).select_from(Notification).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    notifications = list(result.scalars().all())
    return notifications, total


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """Mark a single notification as read. Returns True if found.

    Re-reading keeps the first ``read_at``.
    """
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        return False
    if notification.read_at is None:
        notification.read_at = datetime.now(timezone.utc)
        await db.flush()
    return True


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read_at.is_(None))
        .values(read_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read_at.is_(None))
    )
    return result.scalar_one()
