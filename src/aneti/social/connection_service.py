"""Connection requests between members.

Rules:
- No self-connection
- At most one open edge per pair, in either direction (pending or accepted)
- Only the receiver resolves a request, and only while it is pending
- A rejected request does not block a new one
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import ConnectionRequest, User
from aneti.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from aneti.social.notification_service import notify_connection_accepted, notify_connection_request

logger = logging.getLogger(__name__)

CONNECTION_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["accepted", "rejected"],
    "accepted": [],
    "rejected": [],
}


def _between(a: int, b: int):  # type: ignore[no-untyped-def]
    return or_(
        and_(ConnectionRequest.requester_id == a, ConnectionRequest.receiver_id == b),
        and_(ConnectionRequest.requester_id == b, ConnectionRequest.receiver_id == a),
    )


async def send_request(db: AsyncSession, requester: User, receiver_id: int) -> ConnectionRequest:
    """Open a pending request from ``requester`` to ``receiver_id``."""
    if receiver_id == requester.id:
        raise ValidationError("Você não pode se conectar consigo mesmo")

    receiver = await db.get(User, receiver_id)
    if receiver is None or not receiver.is_active:
        raise NotFound(f"Usuário {receiver_id} não encontrado")

    existing = await db.execute(
        select(ConnectionRequest.status).where(
            _between(requester.id, receiver_id),
            ConnectionRequest.status.in_(("pending", "accepted")),
        )
    )
    status = existing.scalars().first()
    if status == "accepted":
        raise ValidationError("Vocês já estão conectados")
    if status == "pending":
        raise ValidationError("Já existe uma solicitação de conexão pendente")

    request = ConnectionRequest(
        requester_id=requester.id,
        receiver_id=receiver_id,
        status="pending",
        created_at=datetime.now(timezone.utc),
    )
    db.add(request)
    await db.flush()

    await notify_connection_request(db, receiver_id, requester.id, requester.full_name)
    logger.info("Connection request %d: %d -> %d", request.id, requester.id, receiver_id)
    return request


async def _resolve(db: AsyncSession, user: User, request_id: int, target: str) -> ConnectionRequest:
    result = await db.execute(select(ConnectionRequest).where(ConnectionRequest.id == request_id))
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFound(f"Solicitação de conexão {request_id} não encontrada")
    if request.receiver_id != user.id:
        raise Forbidden("Apenas o destinatário pode responder a esta solicitação")

    valid = CONNECTION_TRANSITIONS.get(request.status, [])
    if target not in valid:
        raise InvalidTransition(request.status, target, valid)

    request.status = target
    request.responded_at = datetime.now(timezone.utc)
    await db.flush()
    return request


async def accept_request(db: AsyncSession, user: User, request_id: int) -> ConnectionRequest:
    request = await _resolve(db, user, request_id, "accepted")
    await notify_connection_accepted(db, request.requester_id, user.id, user.full_name)
    return request


async def reject_request(db: AsyncSession, user: User, request_id: int) -> ConnectionRequest:
    return await _resolve(db, user, request_id, "rejected")


async def list_connections(db: AsyncSession, user_id: int) -> list[User]:
    """Members with an accepted connection to ``user_id``."""
    result = await db.execute(
        select(ConnectionRequest).where(
            or_(ConnectionRequest.requester_id == user_id, ConnectionRequest.receiver_id == user_id),
            ConnectionRequest.status == "accepted",
        )
    )
    other_ids = [
        r.receiver_id if r.requester_id == user_id else r.requester_id for r in result.scalars().all()
    ]
    if not other_ids:
        return []
    users = await db.execute(select(User).where(User.id.in_(other_ids)).order_by(User.full_name))
    return list(users.scalars().all())


async def list_pending_requests(db: AsyncSession, user_id: int) -> list[ConnectionRequest]:
    """Pending requests waiting on ``user_id``, newest first."""
    result = await db.execute(
        select(ConnectionRequest)
        .where(ConnectionRequest.receiver_id == user_id, ConnectionRequest.status == "pending")
        .order_by(ConnectionRequest.created_at.desc(), ConnectionRequest.id.desc())
    )
    return list(result.scalars().all())
