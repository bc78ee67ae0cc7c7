"""
Authentication business logic.

Handles member registration, login with lockout, and password flows.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select

from aneti.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from aneti.config import get_settings
from aneti.db.models import User
from aneti.errors import Forbidden, ValidationError
from aneti.social.notification_service import notify_welcome

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

    from aneti.auth.reset_tokens import ResetTokenStore

logger = structlog.get_logger()


class InvalidCredentials(ValidationError):
    status_code = 401


class AccountLocked(Forbidden):
    status_code = 429


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_login(db: AsyncSession, login: str) -> User | None:
    """Fetch a user by email or username; members log in with either."""
    login = login.strip().lower()
    result = await db.execute(
        select(User).where(or_(func.lower(User.email) == login, func.lower(User.username) == login))
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
    full_name: str,
    city: str = "",
    state: str = "",
    area: str = "",
) -> User:
    """
    Create a member account (not yet approved) and greet it with a welcome notification.

    Raises:
        ValidationError: duplicate email/username or weak password.
    """
    validate_password_strength(password)

    if await get_user_by_email(db, email) is not None:
        raise ValidationError("E-mail já cadastrado")

    existing_username = await db.execute(
        select(User.id).where(func.lower(User.username) == username.lower())
    )
    if existing_username.scalar_one_or_none() is not None:
        raise ValidationError("Nome de usuário já está em uso")

    now = datetime.now(timezone.utc)
    user = User(
        username=username.strip(),
        email=email.lower().strip(),
        password_hash=hash_password(password),
        full_name=full_name.strip(),
        city=city,
        state=state.upper(),
        area=area,
        role="member",
        is_approved=False,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()

    await notify_welcome(db, user.id)
    logger.info("user_created", user_id=user.id, username=user.username)
    return user


# ---------------------------------------------------------------------------
# Login & lockout
# ---------------------------------------------------------------------------


async def check_account_lockout(redis: Redis, user_id: int) -> bool:
    settings = get_settings()
    count_str = await redis.get(f"login_attempts:{user_id}")
    if count_str is None:
        return False
    return int(count_str) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Redis, user_id: int) -> int:
    """Increment failed login counter. The window starts at the first failure."""
    settings = get_settings()
    key = f"login_attempts:{user_id}"
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    return int(count)


async def clear_failed_login(redis: Redis, user_id: int) -> None:
    await redis.delete(f"login_attempts:{user_id}")


async def authenticate_user(db: AsyncSession, redis: Redis, login: str, password: str) -> User:
    """
    Authenticate with email or username + password.

    Raises:
        InvalidCredentials: unknown login or wrong password.
        AccountLocked: too many recent failures.
        Forbidden: the account was deactivated by an admin.
    """
    user = await get_user_by_login(db, login)
    if user is None:
        raise InvalidCredentials("Credenciais inválidas")

    if await check_account_lockout(redis, user.id):
        raise AccountLocked("Conta temporariamente bloqueada. Tente novamente mais tarde.")

    if not user.is_active:
        raise Forbidden("Conta desativada")

    if not verify_password(password, user.password_hash):
        attempts = await increment_failed_login(redis, user.id)
        logger.info("login_failed", user_id=user.id, attempts=attempts)
        raise InvalidCredentials("Credenciais inválidas")

    await clear_failed_login(redis, user.id)

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        await db.flush()
        logger.info("password_rehashed", user_id=user.id)

    return user


# ---------------------------------------------------------------------------
# Password flows
# ---------------------------------------------------------------------------


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise InvalidCredentials("Senha atual incorreta")
    validate_password_strength(new_password)
    user.password_hash = hash_password(new_password)
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("password_changed", user_id=user.id)


async def request_password_reset(db: AsyncSession, store: ResetTokenStore, email: str) -> tuple[User, str] | None:
    """Issue a reset token for the account, or None if no active account has that email.

    The caller always answers the same way so the endpoint does not leak which
    emails are registered.
    """
    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        return None
    token = await store.issue(user.id)
    logger.info("password_reset_requested", user_id=user.id)
    return user, token


async def reset_password(db: AsyncSession, store: ResetTokenStore, token: str, new_password: str) -> User:
    """Consume a reset token and set the new password.

    Strength is checked before the token is consumed so a weak password does
    not burn the link.
    """
    validate_password_strength(new_password)
    user_id = await store.consume(token)
    if user_id is None:
        raise ValidationError("Token inválido ou expirado")

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise ValidationError("Token inválido ou expirado")

    user.password_hash = hash_password(new_password)
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("password_reset_completed", user_id=user.id)
    return user
