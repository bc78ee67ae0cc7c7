"""
Plan-change requests from approved members.

pending -> approved | rejected. Rejection is final for that request; the
member files a new one to try again. Approval moves the member to the
requested plan and is idempotent: approving twice, or approving when the
member already holds the plan, never writes the plan a second time.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import PlanChangeRequest, User
from aneti.errors import Forbidden, NotFound, ValidationError
from aneti.membership.application_service import normalize_documents, record_review_event
from aneti.membership.lifecycle import PLAN_CHANGE_STATUSES, PLAN_CHANGE_TRANSITIONS, validate_transition
from aneti.membership.plan_service import get_plan
from aneti.social.notification_service import notify_plan_change_approved, notify_plan_change_rejected

logger = structlog.get_logger()

PENDING_EXISTS = "Você já possui uma solicitação de mudança de plano pendente"


async def _load(db: AsyncSession, request_id: int) -> PlanChangeRequest:
    """Fetch a request for a decision, locking the row until the transaction ends."""
    result = await db.execute(
        select(PlanChangeRequest)
        .where(PlanChangeRequest.id == request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFound(f"Solicitação de mudança de plano {request_id} não encontrada")
    return request


async def get_pending_plan_change_request(db: AsyncSession, user_id: int) -> PlanChangeRequest | None:
    result = await db.execute(
        select(PlanChangeRequest).where(
            PlanChangeRequest.user_id == user_id,
            PlanChangeRequest.status == "pending",
        )
    )
    return result.scalar_one_or_none()


async def create_plan_change_request(
    db: AsyncSession,
    user: User,
    requested_plan_id: int,
    documents: list[dict[str, Any]] | None = None,
) -> PlanChangeRequest:
    """
    Open a pending request to move ``user`` to another plan.

    Raises:
        Forbidden: user is not an approved, active member.
        ValidationError: unknown/inactive plan, same plan as now, or a request
            is already pending.
    """
    if not user.is_approved or not user.is_active:
        raise Forbidden("Apenas membros aprovados podem solicitar mudança de plano")

    plan = await get_plan(db, requested_plan_id)
    if plan is None or not plan.is_active:
        raise ValidationError(f"Plano {requested_plan_id} não encontrado")
    if plan.id == user.current_plan_id:
        raise ValidationError("Você já está neste plano")

    if await get_pending_plan_change_request(db, user.id) is not None:
        raise ValidationError(PENDING_EXISTS)

    request = PlanChangeRequest(
        user_id=user.id,
        current_plan_id=user.current_plan_id,
        requested_plan_id=plan.id,
        status="pending",
        documents=normalize_documents(documents),
        created_at=datetime.now(timezone.utc),
    )
    try:
        async with db.begin_nested():
            db.add(request)
    except IntegrityError as e:
        # idx_plan_change_one_pending: a concurrent request got in first
        logger.info("plan_change_request_conflict", user_id=user.id)
        raise ValidationError(PENDING_EXISTS) from e

    await record_review_event(db, "plan_change_request", request.id, user.id, "submit", None, "pending")
    logger.info("plan_change_requested", request_id=request.id, user_id=user.id, plan=plan.name)
    return request


async def get_user_plan_change_requests(db: AsyncSession, user_id: int) -> list[PlanChangeRequest]:
    result = await db.execute(
        select(PlanChangeRequest)
        .where(PlanChangeRequest.user_id == user_id)
        .order_by(PlanChangeRequest.created_at.desc(), PlanChangeRequest.id.desc())
    )
    return list(result.scalars().all())


async def list_plan_change_requests(
    db: AsyncSession, actor: User, status: str | None = None
) -> list[PlanChangeRequest]:
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem listar solicitações")
    query = select(PlanChangeRequest)
    if status is not None:
        if status not in PLAN_CHANGE_STATUSES:
            raise ValidationError(f"Status inválido: {status}")
        query = query.where(PlanChangeRequest.status == status)
    result = await db.execute(query.order_by(PlanChangeRequest.created_at.desc(), PlanChangeRequest.id.desc()))
    return list(result.scalars().all())


async def approve_plan_change_request(
    db: AsyncSession,
    actor: User,
    request_id: int,
    admin_notes: str | None = None,
) -> PlanChangeRequest:
    """
    pending -> approved and move the member to the requested plan.

    An already-approved request is returned untouched.

    Raises:
        Forbidden: actor is not an admin.
        NotFound: unknown request.
        InvalidTransition: the request was rejected.
        ValidationError: the requested plan no longer exists.
    """
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem aprovar mudanças de plano")

    request = await _load(db, request_id)
    if request.status == "approved":
        logger.info("plan_change_already_approved", request_id=request.id)
        return request
    validate_transition(request.status, "approved", PLAN_CHANGE_TRANSITIONS)

    plan = await get_plan(db, request.requested_plan_id)
    if plan is None:
        raise ValidationError(f"Plano {request.requested_plan_id} não encontrado")

    member = await db.get(User, request.user_id)
    if member is None:
        raise NotFound(f"Usuário {request.user_id} não encontrado")

    now = datetime.now(timezone.utc)
    if member.current_plan_id == plan.id:
        logger.info("plan_change_noop", request_id=request.id, user_id=member.id)
    else:
        member.current_plan_id = plan.id
        member.plan_name = plan.name
        member.updated_at = now

    request.status = "approved"
    if admin_notes is not None:
        request.admin_notes = admin_notes.strip() or None
    request.reviewed_by = actor.id
    request.reviewed_at = now
    await db.flush()

    await record_review_event(
        db, "plan_change_request", request.id, actor.id, "approve", "pending", "approved", request.admin_notes
    )
    await notify_plan_change_approved(db, member.id, plan.name, request.id)

    logger.info("plan_change_approved", request_id=request.id, user_id=member.id, plan=plan.name)
    return request


async def reject_plan_change_request(
    db: AsyncSession,
    actor: User,
    request_id: int,
    admin_notes: str | None = None,
) -> PlanChangeRequest:
    """pending -> rejected. Raises InvalidTransition for a decided request."""
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem rejeitar mudanças de plano")

    request = await _load(db, request_id)
    validate_transition(request.status, "rejected", PLAN_CHANGE_TRANSITIONS)

    plan = await get_plan(db, request.requested_plan_id)
    plan_name = plan.name if plan is not None else ""

    request.status = "rejected"
    if admin_notes is not None:
        request.admin_notes = admin_notes.strip() or None
    request.reviewed_by = actor.id
    request.reviewed_at = datetime.now(timezone.utc)
    await db.flush()

    await record_review_event(
        db, "plan_change_request", request.id, actor.id, "reject", "pending", "rejected", request.admin_notes
    )
    await notify_plan_change_rejected(db, request.user_id, plan_name, request.admin_notes, request.id)

    logger.info("plan_change_rejected", request_id=request.id, actor_id=actor.id)
    return request
