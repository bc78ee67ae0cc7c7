"""Pydantic schemas for membership endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# --- Plans ---


class PlanResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    price: int
    features: list[str] = []
    is_active: bool

    model_config = {"from_attributes": True}


class CreatePlanRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    description: str | None = Field(None, max_length=2000)
    price: int = Field(0, ge=0)
    features: list[str] = []


# --- Documents ---


class DocumentIn(BaseModel):
    """Reference to an already-uploaded file."""

    name: str = Field(..., min_length=1, max_length=256)
    url: str = Field(..., min_length=1, max_length=2048)
    type: str = Field("application/octet-stream", max_length=128)


class DocumentResponse(BaseModel):
    id: str
    name: str
    url: str
    type: str


# --- Applications ---


class SubmitApplicationRequest(BaseModel):
    plan_id: int
    documents: list[DocumentIn] = []


class AppealRequest(BaseModel):
    message: str = Field(..., max_length=5000)
    documents: list[DocumentIn] = []


class RejectApplicationRequest(BaseModel):
    reason: str = Field(..., max_length=5000)
    request_documents: bool = False


class ApplicationResponse(BaseModel):
    id: int
    user_id: int
    plan_id: int
    status: Literal["pending", "documents_requested", "rejected", "approved"]
    payment_status: str
    documents: list[DocumentResponse] = []
    admin_notes: str | None = None
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ReviewEventResponse(BaseModel):
    id: int
    actor_id: int
    action: str
    from_status: str | None = None
    to_status: str
    notes: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


# --- Plan change ---


class CreatePlanChangeRequest(BaseModel):
    requested_plan_id: int
    documents: list[DocumentIn] = []


class DecidePlanChangeRequest(BaseModel):
    admin_notes: str | None = Field(None, max_length=5000)


class PlanChangeResponse(BaseModel):
    id: int
    user_id: int
    current_plan_id: int | None = None
    requested_plan_id: int
    status: Literal["pending", "approved", "rejected"]
    documents: list[DocumentResponse] = []
    admin_notes: str | None = None
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


# --- Admin members ---


class MemberAdminResponse(BaseModel):
    id: int
    username: str
    email: str
    full_name: str
    city: str = ""
    state: str = ""
    area: str = ""
    is_approved: bool
    is_active: bool
    current_plan_id: int | None = None
    plan_name: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class MemberListResponse(BaseModel):
    members: list[MemberAdminResponse]
    total: int
    page: int
    per_page: int


class MemberStatusRequest(BaseModel):
    reason: str | None = Field(None, max_length=2000)


# --- Admin dashboard ---


class AdminStatsResponse(BaseModel):
    total_members: int
    active_members: int
    approved_members: int
    pending_applications: int
    pending_plan_change_requests: int
