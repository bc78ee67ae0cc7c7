"""Admin membership endpoints.

Decisions go through ``get_current_user`` and the services enforce the admin
role themselves; listings use ``require_admin``.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.auth.dependencies import get_current_user, require_admin
from aneti.config import get_settings
from aneti.database import get_session
from aneti.db.models import Application, User
from aneti.email.service import get_email_service
from aneti.membership.application_service import (
    approve_application,
    list_applications,
    reject_application,
)
from aneti.membership.member_service import get_member, list_members, set_member_active
from aneti.membership.plan_change_service import (
    approve_plan_change_request,
    list_plan_change_requests,
    reject_plan_change_request,
)
from aneti.membership.plan_service import create_plan, get_plan, toggle_plan
from aneti.membership.schemas import (
    AdminStatsResponse,
    ApplicationResponse,
    CreatePlanRequest,
    DecidePlanChangeRequest,
    MemberAdminResponse,
    MemberListResponse,
    MemberStatusRequest,
    PlanChangeResponse,
    PlanResponse,
    RejectApplicationRequest,
)
from aneti.membership.stats_service import get_admin_stats
from aneti.redis_client import get_redis

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


async def _email_decision(db: AsyncSession, application: Application) -> None:
    """Best-effort e-mail to the applicant after the decision is committed."""
    try:
        applicant = await db.get(User, application.user_id)
        plan = await get_plan(db, application.plan_id)
        if applicant is None:
            return
        await get_email_service(get_redis()).send_template(
            to=applicant.email,
            template_name="application_decision",
            context={
                "full_name": applicant.full_name,
                "status": application.status,
                "plan_name": plan.name if plan is not None else "",
                "notes": application.admin_notes if application.status != "approved" else None,
                "action_url": f"{get_settings().frontend_base_url}/applications",
            },
        )
    except Exception:
        logger.exception("application_decision_email_failed", application_id=application.id)


# ── Plans ──


@router.post("/plans", response_model=PlanResponse, status_code=201)
async def admin_create_plan(
    body: CreatePlanRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    plan = await create_plan(db, user, body.name, body.price, body.description, body.features)
    await db.commit()
    return PlanResponse.model_validate(plan)


@router.post("/plans/{plan_id}/toggle", response_model=PlanResponse)
async def admin_toggle_plan(
    plan_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    plan = await toggle_plan(db, user, plan_id)
    await db.commit()
    return PlanResponse.model_validate(plan)


# ── Applications ──


@router.get("/applications", response_model=list[ApplicationResponse])
async def admin_list_applications(
    status: str | None = Query(None),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    applications = await list_applications(db, user, status)
    return [ApplicationResponse.model_validate(a) for a in applications]


@router.post("/applications/{application_id}/approve", response_model=ApplicationResponse)
async def admin_approve_application(
    application_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    application = await approve_application(db, user, application_id)
    await db.commit()
    await _email_decision(db, application)
    return ApplicationResponse.model_validate(application)


@router.post("/applications/{application_id}/reject", response_model=ApplicationResponse)
async def admin_reject_application(
    application_id: int,
    body: RejectApplicationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Reject, or ask for more documents when ``request_documents`` is true."""
    application = await reject_application(
        db, user, application_id, body.reason, request_documents=body.request_documents
    )
    await db.commit()
    await _email_decision(db, application)
    return ApplicationResponse.model_validate(application)


# ── Plan change ──


@router.get("/plan-change-requests", response_model=list[PlanChangeResponse])
async def admin_list_plan_change_requests(
    status: str | None = Query(None),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    requests = await list_plan_change_requests(db, user, status)
    return [PlanChangeResponse.model_validate(r) for r in requests]


@router.post("/plan-change-requests/{request_id}/approve", response_model=PlanChangeResponse)
async def admin_approve_plan_change(
    request_id: int,
    body: DecidePlanChangeRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    notes = body.admin_notes if body is not None else None
    request = await approve_plan_change_request(db, user, request_id, notes)
    await db.commit()
    return PlanChangeResponse.model_validate(request)


@router.post("/plan-change-requests/{request_id}/reject", response_model=PlanChangeResponse)
async def admin_reject_plan_change(
    request_id: int,
    body: DecidePlanChangeRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    notes = body.admin_notes if body is not None else None
    request = await reject_plan_change_request(db, user, request_id, notes)
    await db.commit()
    return PlanChangeResponse.model_validate(request)


# ── Members ──


@router.get("/members", response_model=MemberListResponse)
async def admin_list_members(
    active: bool | None = Query(None),
    approved: bool | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    members, total = await list_members(
        db, user, is_active=active, is_approved=approved, page=page, per_page=per_page
    )
    return MemberListResponse(
        members=[MemberAdminResponse.model_validate(m) for m in members],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/members/{member_id}", response_model=MemberAdminResponse)
async def admin_get_member(
    member_id: int,
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    return MemberAdminResponse.model_validate(await get_member(db, user, member_id))


@router.post("/members/{member_id}/deactivate", response_model=MemberAdminResponse)
async def admin_deactivate_member(
    member_id: int,
    body: MemberStatusRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Ban the account: it can no longer log in or call the API."""
    member = await set_member_active(db, user, member_id, False, body.reason if body else None)
    await db.commit()
    return MemberAdminResponse.model_validate(member)


@router.post("/members/{member_id}/reactivate", response_model=MemberAdminResponse)
async def admin_reactivate_member(
    member_id: int,
    body: MemberStatusRequest | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    member = await set_member_active(db, user, member_id, True, body.reason if body else None)
    await db.commit()
    return MemberAdminResponse.model_validate(member)


# ── Dashboard ──


@router.get("/stats", response_model=AdminStatsResponse)
async def admin_stats(
    user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    stats = await get_admin_stats(db, get_redis())
    return AdminStatsResponse(**stats)
