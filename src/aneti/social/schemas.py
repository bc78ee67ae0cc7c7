"""Pydantic schemas for social endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# --- Notifications ---


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    action_url: str | None = None
    related_entity_id: str | None = None
    related_entity_type: str | None = None
    actor_id: int | None = None
    priority: str = "normal"
    created_at: datetime | None = None
    read_at: datetime | None = None
    read: bool = False


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=2000)
    target_type: str = "all_members"
    target_value: str | None = None
    priority: Literal["low", "normal", "high"] = "normal"
    action_url: str | None = Field(None, max_length=256)
    include_inactive: bool = False


class BroadcastResponse(BaseModel):
    sent_to_count: int
    failed_count: int = 0


# --- Connections ---


class ConnectionRequestCreate(BaseModel):
    receiver_id: int


class ConnectionRequestResponse(BaseModel):
    id: int
    requester_id: int
    receiver_id: int
    status: str
    created_at: datetime | None = None
    responded_at: datetime | None = None

    model_config = {"from_attributes": True}


class MemberSummary(BaseModel):
    id: int
    username: str
    full_name: str
    city: str = ""
    state: str = ""
    area: str = ""
    plan_name: str | None = None

    model_config = {"from_attributes": True}


# --- Groups ---


class CreateGroupRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=128)
    description: str | None = Field(None, max_length=2000)


class GroupResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    member_count: int = 0


class GroupMembershipResponse(BaseModel):
    group_id: int
    user_id: int
    role: str
    status: str
    joined_at: datetime | None = None

    model_config = {"from_attributes": True}


# --- Feed ---


class CreatePostRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CreateCommentRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class PostResponse(BaseModel):
    id: int
    author_id: int
    author_name: str | None = None
    content: str
    like_count: int
    comment_count: int
    created_at: datetime | None = None


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    total: int
    page: int
    per_page: int


class LikeResponse(BaseModel):
    post_id: int
    liked: bool
    like_count: int


class CommentResponse(BaseModel):
    id: int
    post_id: int
    author_id: int
    content: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
