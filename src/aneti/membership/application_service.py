"""
Membership application lifecycle.

pending -> approved | rejected | documents_requested, and back to pending when
the applicant appeals a rejection or answers a documents request. Approved is
terminal.

Every transition does three things in the caller's session: move the status,
append a ReviewEvent, and write the applicant's notification. Nothing is
committed here; the router commits once, so either all three persist or none.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import Application, ReviewEvent, User
from aneti.errors import Forbidden, NotFound, ValidationError
from aneti.membership.lifecycle import APPLICATION_STATUSES, validate_transition
from aneti.membership.plan_service import get_plan
from aneti.social.notification_service import (
    notify_application_approved,
    notify_application_rejected,
    notify_documents_requested,
)

logger = structlog.get_logger()

# What the applicant's message is called, keyed by the status it answers.
APPEAL_KINDS = {"rejected": "Recurso", "documents_requested": "Resposta"}


def normalize_documents(documents: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Give each ``{name, url, type}`` reference an id and drop unknown keys."""
    normalized: list[dict[str, Any]] = []
    for doc in documents or []:
        name = str(doc.get("name") or "").strip()
        url = str(doc.get("url") or "").strip()
        if not name or not url:
            raise ValidationError("Cada documento precisa de nome e URL")
        normalized.append({
            "id": doc.get("id") or uuid.uuid4().hex,
            "name": name,
            "url": url,
            "type": doc.get("type") or "application/octet-stream",
        })
    return normalized


async def record_review_event(
    db: AsyncSession,
    subject_type: str,
    subject_id: int,
    actor_id: int,
    action: str,
    from_status: str | None,
    to_status: str,
    notes: str | None = None,
) -> ReviewEvent:
    event = ReviewEvent(
        subject_type=subject_type,
        subject_id=subject_id,
        actor_id=actor_id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        notes=notes,
        created_at=datetime.now(timezone.utc),
    )
    db.add(event)
    await db.flush()
    return event


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def _load(db: AsyncSession, application_id: int, *, for_update: bool = False) -> Application:
    """Fetch by id. Transitions pass ``for_update`` so concurrent reviewers serialize on the row."""
    query = select(Application).where(Application.id == application_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    application = result.scalar_one_or_none()
    if application is None:
        raise NotFound(f"Solicitação {application_id} não encontrada")
    return application


async def get_application(db: AsyncSession, actor: User, application_id: int) -> Application:
    """Fetch one application; only its owner or an admin may read it."""
    application = await _load(db, application_id)
    if application.user_id != actor.id and not actor.is_admin:
        raise Forbidden("Você não tem acesso a esta solicitação")
    return application


async def get_user_application(db: AsyncSession, user_id: int) -> Application | None:
    result = await db.execute(select(Application).where(Application.user_id == user_id))
    return result.scalar_one_or_none()


async def list_applications(
    db: AsyncSession, actor: User, status: str | None = None
) -> list[Application]:
    """All applications, newest first, optionally filtered by status (admin only)."""
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem listar solicitações")
    query = select(Application)
    if status is not None:
        if status not in APPLICATION_STATUSES:
            raise ValidationError(f"Status inválido: {status}")
        query = query.where(Application.status == status)
    result = await db.execute(query.order_by(Application.created_at.desc(), Application.id.desc()))
    return list(result.scalars().all())


async def get_review_history(db: AsyncSession, actor: User, application_id: int) -> list[ReviewEvent]:
    """Every recorded transition of an application, oldest first."""
    application = await get_application(db, actor, application_id)
    result = await db.execute(
        select(ReviewEvent)
        .where(ReviewEvent.subject_type == "application", ReviewEvent.subject_id == application.id)
        .order_by(ReviewEvent.id)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def submit_application(
    db: AsyncSession,
    user: User,
    plan_id: int,
    documents: list[dict[str, Any]] | None = None,
) -> Application:
    """Create the user's application in ``pending``.

    Raises:
        ValidationError: the user already has an application, or the plan is
            unknown or inactive.
    """
    if await get_user_application(db, user.id) is not None:
        raise ValidationError("Você já possui uma solicitação de associação")

    plan = await get_plan(db, plan_id)
    if plan is None or not plan.is_active:
        raise ValidationError(f"Plano {plan_id} não encontrado")

    now = datetime.now(timezone.utc)
    application = Application(
        user_id=user.id,
        plan_id=plan.id,
        status="pending",
        payment_status="free" if plan.price == 0 else "pending",
        documents=normalize_documents(documents),
        created_at=now,
        updated_at=now,
    )
    try:
        async with db.begin_nested():
            db.add(application)
    except IntegrityError as e:
        # a concurrent submit for the same user won the unique key
        logger.info("application_submit_conflict", user_id=user.id)
        raise ValidationError("Você já possui uma solicitação de associação") from e

    await record_review_event(db, "application", application.id, user.id, "submit", None, "pending")
    logger.info("application_submitted", application_id=application.id, user_id=user.id, plan=plan.name)
    return application


async def approve_application(db: AsyncSession, actor: User, application_id: int) -> Application:
    """
    pending -> approved. Assigns the requested plan to the applicant.

    Raises:
        Forbidden: actor is not an admin.
        NotFound: unknown application.
        InvalidTransition: application is not pending.
        ValidationError: the requested plan no longer exists.
    """
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem aprovar solicitações")

    application = await _load(db, application_id, for_update=True)
    validate_transition(application.status, "approved")

    plan = await get_plan(db, application.plan_id)
    if plan is None:
        raise ValidationError(f"Plano {application.plan_id} não encontrado")

    applicant = await db.get(User, application.user_id)
    if applicant is None:
        raise NotFound(f"Usuário {application.user_id} não encontrado")

    now = datetime.now(timezone.utc)
    from_status = application.status
    application.status = "approved"
    application.reviewed_by = actor.id
    application.reviewed_at = now
    application.updated_at = now

    applicant.current_plan_id = plan.id
    applicant.plan_name = plan.name
    applicant.is_approved = True
    applicant.updated_at = now
    await db.flush()

    await record_review_event(db, "application", application.id, actor.id, "approve", from_status, "approved")
    await notify_application_approved(db, applicant.id, plan.name, application.id)

    logger.info("application_approved", application_id=application.id, actor_id=actor.id, plan=plan.name)
    return application


async def reject_application(
    db: AsyncSession,
    actor: User,
    application_id: int,
    reason: str,
    request_documents: bool = False,
) -> Application:
    """
    pending -> rejected, or pending -> documents_requested when
    ``request_documents`` is set. The reason is kept in ``admin_notes``.

    Raises:
        Forbidden: actor is not an admin.
        ValidationError: empty reason.
        NotFound: unknown application.
        InvalidTransition: application is not pending.
    """
    if not actor.is_admin:
        raise Forbidden("Apenas administradores podem rejeitar solicitações")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("O motivo é obrigatório")

    application = await _load(db, application_id, for_update=True)
    target = "documents_requested" if request_documents else "rejected"
    validate_transition(application.status, target)

    plan = await get_plan(db, application.plan_id)
    plan_name = plan.name if plan is not None else ""

    now = datetime.now(timezone.utc)
    from_status = application.status
    application.status = target
    application.admin_notes = reason
    application.reviewed_by = actor.id
    application.reviewed_at = now
    application.updated_at = now
    await db.flush()

    action = "request_documents" if request_documents else "reject"
    await record_review_event(db, "application", application.id, actor.id, action, from_status, target, reason)
    if request_documents:
        await notify_documents_requested(db, application.user_id, plan_name, reason, application.id)
    else:
        await notify_application_rejected(db, application.user_id, plan_name, reason, application.id)

    logger.info("application_" + target, application_id=application.id, actor_id=actor.id)
    return application


async def appeal_application(
    db: AsyncSession,
    actor: User,
    application_id: int,
    message: str,
    documents: list[dict[str, Any]] | None = None,
) -> Application:
    """
    rejected | documents_requested -> pending, by the applicant.

    New documents are appended, ``admin_notes`` becomes the applicant's message
    and the review stamp is cleared so the application is re-reviewed.

    Raises:
        NotFound: unknown application.
        Forbidden: actor does not own the application.
        ValidationError: empty message.
        InvalidTransition: application is pending or approved.
    """
    application = await _load(db, application_id, for_update=True)
    if application.user_id != actor.id:
        raise Forbidden("Apenas o autor da solicitação pode recorrer")
    message = (message or "").strip()
    if not message:
        raise ValidationError("A mensagem é obrigatória")

    from_status = application.status
    validate_transition(from_status, "pending")

    new_documents = normalize_documents(documents)
    kind = APPEAL_KINDS[from_status]

    application.documents = [*(application.documents or []), *new_documents]
    application.admin_notes = f"{kind}: {message}"
    application.status = "pending"
    application.reviewed_by = None
    application.reviewed_at = None
    application.updated_at = datetime.now(timezone.utc)
    await db.flush()

    action = "appeal" if from_status == "rejected" else "respond"
    await record_review_event(db, "application", application.id, actor.id, action, from_status, "pending", message)

    logger.info(
        "application_reopened",
        application_id=application.id,
        from_status=from_status,
        added_documents=len(new_documents),
    )
    return application
