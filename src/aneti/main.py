"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from aneti.auth.router import router as auth_router
from aneti.config import get_settings
from aneti.database import close_db, get_session, init_db
from aneti.health.router import router as health_router
from aneti.membership.admin_router import router as admin_router
from aneti.membership.plan_service import seed_plans
from aneti.membership.router import router as membership_router
from aneti.middleware import setup_middleware
from aneti.redis_client import close_redis, init_redis
from aneti.social.notification_router import router as notification_router
from aneti.social.router import router as social_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    # Default plans (idempotent); tables may not exist before the first migration.
    try:
        async for db in get_session():
            await seed_plans(db)
            await db.commit()
            break
    except SQLAlchemyError:
        logger.warning("plan_seeding_failed", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ANETI API",
        description="Backend da ANETI: associação de membros, planos e notificações",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(membership_router)
    app.include_router(admin_router)
    app.include_router(notification_router)
    app.include_router(social_router)

    return app


app = create_app()
