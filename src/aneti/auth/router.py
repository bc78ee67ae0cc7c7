"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from aneti.auth.dependencies import get_current_user
from aneti.auth.jwt import create_access_token
from aneti.auth.reset_tokens import ResetTokenStore
from aneti.auth.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
)
from aneti.auth.service import (
    authenticate_user,
    change_password,
    register_user,
    request_password_reset,
    reset_password,
)
from aneti.config import get_settings
from aneti.database import get_session
from aneti.db.models import User
from aneti.email.service import get_email_service
from aneti.redis_client import get_redis

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def get_redis_client() -> Redis:
    return get_redis()


def get_reset_token_store(redis: Redis = Depends(get_redis_client)) -> ResetTokenStore:
    settings = get_settings()
    return ResetTokenStore(redis, settings.password_reset_token_ttl_minutes * 60)


def _token_response(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.username, user.role),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
    )


async def _send_password_changed(user: User, redis: Redis) -> None:
    try:
        await get_email_service(redis).send_template(
            to=user.email,
            template_name="password_changed",
            context={"full_name": user.full_name},
        )
    except Exception:
        logger.exception("password_changed_email_failed", user_id=user.id)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Create a member account and log it in."""
    user = await register_user(
        db,
        username=body.username,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        city=body.city,
        state=body.state,
        area=body.area,
    )
    await db.commit()
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_client),
) -> TokenResponse:
    user = await authenticate_user(db, redis, body.login, body.password)
    await db.commit()
    logger.info("user_logged_in", user_id=user.id)
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_session),
    store: ResetTokenStore = Depends(get_reset_token_store),
    redis: Redis = Depends(get_redis_client),
) -> dict[str, str]:
    """Request password reset e-mail. Always returns 200."""
    issued = await request_password_reset(db, store, body.email)
    if issued is not None:
        user, token = issued
        settings = get_settings()
        reset_url = f"{settings.frontend_base_url}/auth/reset-password?token={token}"
        try:
            await get_email_service(redis).send_template(
                to=user.email,
                template_name="password_reset",
                context={
                    "reset_url": reset_url,
                    "full_name": user.full_name,
                    "expires_minutes": settings.password_reset_token_ttl_minutes,
                },
            )
        except Exception:
            logger.exception("password_reset_email_failed", user_id=user.id)

    return {"status": "Se o e-mail estiver cadastrado, enviaremos um link de redefinição."}


@router.post("/reset-password")
async def reset_password_endpoint(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_session),
    store: ResetTokenStore = Depends(get_reset_token_store),
    redis: Redis = Depends(get_redis_client),
) -> dict[str, str]:
    user = await reset_password(db, store, body.token, body.new_password)
    await db.commit()
    await _send_password_changed(user, redis)
    return {"status": "password_reset_complete"}


@router.post("/change-password")
async def change_password_endpoint(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Redis = Depends(get_redis_client),
) -> dict[str, str]:
    await change_password(db, user, body.current_password, body.new_password)
    await db.commit()
    await _send_password_changed(user, redis)
    return {"status": "password_changed"}
