"""Membership API endpoints for members.

Plans (1), Applications (4), Plan change (2).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.auth.dependencies import get_current_user
from aneti.database import get_session
from aneti.db.models import User
from aneti.errors import NotFound
from aneti.membership.application_service import (
    appeal_application,
    get_application,
    get_review_history,
    get_user_application,
    submit_application,
)
from aneti.membership.plan_change_service import create_plan_change_request, get_user_plan_change_requests
from aneti.membership.plan_service import list_plans
from aneti.membership.schemas import (
    AppealRequest,
    ApplicationResponse,
    CreatePlanChangeRequest,
    PlanChangeResponse,
    PlanResponse,
    ReviewEventResponse,
    SubmitApplicationRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Membership"])


# ── Plans ──


@router.get("/plans", response_model=list[PlanResponse])
async def get_plans(db: AsyncSession = Depends(get_session)):
    """Active plans, cheapest first. Public."""
    plans = await list_plans(db)
    return [PlanResponse.model_validate(p) for p in plans]


# ── Applications ──


@router.post("/applications", response_model=ApplicationResponse, status_code=201)
async def create_application(
    body: SubmitApplicationRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    application = await submit_application(
        db, user, body.plan_id, [d.model_dump() for d in body.documents]
    )
    await db.commit()
    return ApplicationResponse.model_validate(application)


@router.get("/applications/me", response_model=ApplicationResponse)
async def my_application(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    application = await get_user_application(db, user.id)
    if application is None:
        raise NotFound("Nenhuma solicitação encontrada")
    return ApplicationResponse.model_validate(application)


@router.get("/applications/{application_id}", response_model=ApplicationResponse)
async def read_application(
    application_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    application = await get_application(db, user, application_id)
    return ApplicationResponse.model_validate(application)


@router.get("/applications/{application_id}/history", response_model=list[ReviewEventResponse])
async def application_history(
    application_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    events = await get_review_history(db, user, application_id)
    return [ReviewEventResponse.model_validate(e) for e in events]


@router.post("/applications/{application_id}/appeal", response_model=ApplicationResponse)
async def appeal(
    application_id: int,
    body: AppealRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Appeal a rejection or answer a documents request; back to pending."""
    application = await appeal_application(
        db, user, application_id, body.message, [d.model_dump() for d in body.documents]
    )
    await db.commit()
    return ApplicationResponse.model_validate(application)


# ── Plan change ──


@router.post("/plan-change-requests", response_model=PlanChangeResponse, status_code=201)
async def request_plan_change(
    body: CreatePlanChangeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    request = await create_plan_change_request(
        db, user, body.requested_plan_id, [d.model_dump() for d in body.documents]
    )
    await db.commit()
    return PlanChangeResponse.model_validate(request)


@router.get("/plan-change-requests/me", response_model=list[PlanChangeResponse])
async def my_plan_change_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    requests = await get_user_plan_change_requests(db, user.id)
    return [PlanChangeResponse.model_validate(r) for r in requests]
