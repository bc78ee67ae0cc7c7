"""Admin dashboard counters.

Results are cached in Redis for a few seconds; the dashboard polls.
"""

from __future__ import annotations

import json

import redis.asyncio as aioredis
import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.db.models import Application, PlanChangeRequest, User

logger = structlog.get_logger()

ADMIN_STATS_CACHE_KEY = "admin:stats"
ADMIN_STATS_CACHE_TTL = 10  # seconds


async def _count(session: AsyncSession, query) -> int:  # type: ignore[no-untyped-def]
    result = await session.execute(query)
    return int(result.scalar_one())


async def get_admin_stats(session: AsyncSession, redis: aioredis.Redis) -> dict[str, int]:
    cached = await redis.get(ADMIN_STATS_CACHE_KEY)
    if cached:
        return json.loads(cached)

    members = select(func.count()).select_from(User).where(User.role == "member")
    stats = {
        "total_members": await _count(session, members),
        "active_members": await _count(session, members.where(User.is_active.is_(True))),
        "approved_members": await _count(
            session, members.where(User.is_active.is_(True), User.is_approved.is_(True))
        ),
        "pending_applications": await _count(
            session, select(func.count()).select_from(Application).where(Application.status == "pending")
        ),
        "pending_plan_change_requests": await _count(
            session,
            select(func.count()).select_from(PlanChangeRequest).where(PlanChangeRequest.status == "pending"),
        ),
    }

    await redis.setex(ADMIN_STATS_CACHE_KEY, ADMIN_STATS_CACHE_TTL, json.dumps(stats))
    logger.debug("admin_stats_computed", **stats)
    return stats
