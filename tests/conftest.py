"""Shared test fixtures.

Tests run against an in-memory SQLite database (one per test, schema built
from the models) and fakeredis, so no services are needed. E-mail delivery is
replaced by a mock for every test.
"""

from __future__ import annotations

import os

os.environ["ANETI_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ANETI_JWT_ALGORITHM"] = "HS256"
os.environ["ANETI_JWT_SECRET"] = "test-secret-not-for-production-use-0123456789"
os.environ["ANETI_LOG_FORMAT"] = "console"
os.environ["ANETI_LOG_LEVEL"] = "WARNING"
os.environ["ANETI_RATE_LIMIT_REQUESTS"] = "100000"
os.environ["ANETI_EMAIL_PROVIDER"] = "smtp"

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import fakeredis  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import Select  # noqa: E402
from sqlalchemy.dialects import postgresql  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from aneti.auth.jwt import create_access_token, reset_keys  # noqa: E402
from aneti.auth.password import hash_password  # noqa: E402
from aneti.config import get_settings  # noqa: E402
from aneti.database import close_db, get_engine, init_db  # noqa: E402
from aneti.db.base import Base  # noqa: E402
from aneti.db.models import MembershipPlan, User  # noqa: E402
from aneti.email.service import reset_email_service  # noqa: E402
from aneti.main import create_app  # noqa: E402
from aneti.membership.plan_service import list_plans, seed_plans  # noqa: E402
from aneti.redis_client import use_redis  # noqa: E402

get_settings.cache_clear()
reset_keys()

TEST_PASSWORD = "SenhaForte123"

# argon2 is deliberately slow; hash the shared test password once.
_password_hash: str | None = None


def _test_password_hash() -> str:
    global _password_hash  # noqa: PLW0603
    if _password_hash is None:
        _password_hash = hash_password(TEST_PASSWORD)
    return _password_hash


@pytest.fixture
def mock_email_service(monkeypatch):
    """Replace the e-mail service singleton so nothing is sent."""
    mock_service = MagicMock()
    mock_service.send_template = AsyncMock(return_value=True)
    mock_service.send_email = AsyncMock(return_value=True)

    monkeypatch.setattr("aneti.email.service._email_service", mock_service)
    return mock_service


@pytest_asyncio.fixture(autouse=True)
async def app_state(mock_email_service) -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """Fresh database and Redis for every test."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    redis = fakeredis.FakeAsyncRedis(decode_responses=True)
    # instances share one fake server; start empty
    await redis.flushall()
    use_redis(redis)

    yield redis

    await close_db()
    use_redis(None)
    await redis.aclose()
    reset_email_service()


@pytest_asyncio.fixture
async def redis_client(app_state: fakeredis.FakeAsyncRedis) -> fakeredis.FakeAsyncRedis:
    return app_state


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for setup and assertions.

    The in-memory database has a single connection, so commit (or roll back)
    before handing control to the HTTP client.
    """
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        yield session


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to a fresh app instance."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


UserFactory = Callable[..., Awaitable[User]]


@pytest.fixture
def user_factory(db_session: AsyncSession) -> UserFactory:
    """Create users directly in ``db_session`` (flushed, not committed)."""
    counter = {"n": 0}

    async def _create(
        username: str | None = None,
        *,
        role: str = "member",
        is_approved: bool = False,
        is_active: bool = True,
        plan: MembershipPlan | None = None,
        full_name: str | None = None,
    ) -> User:
        counter["n"] += 1
        username = username or f"membro{counter['n']}"
        now = datetime.now(timezone.utc)
        user = User(
            username=username,
            email=f"{username}@exemplo.com.br",
            password_hash=_test_password_hash(),
            full_name=full_name or username.capitalize(),
            role=role,
            is_approved=is_approved,
            is_active=is_active,
            current_plan_id=plan.id if plan is not None else None,
            plan_name=plan.name if plan is not None else None,
            created_at=now,
            updated_at=now,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _create


@pytest_asyncio.fixture
async def plans(db_session: AsyncSession) -> list[MembershipPlan]:
    """The default catalogue, cheapest first: Público, Júnior, Pleno, Sênior."""
    await seed_plans(db_session)
    await db_session.flush()
    return await list_plans(db_session)


@pytest_asyncio.fixture
async def admin(user_factory: UserFactory) -> User:
    return await user_factory("admin", role="admin", is_approved=True, full_name="Admin ANETI")


@pytest_asyncio.fixture
async def member(user_factory: UserFactory) -> User:
    return await user_factory("maria", full_name="Maria Silva")


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.username, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[[User], dict[str, str]]:
    """Bearer headers for a user."""
    return auth_headers


@pytest.fixture
def recorded_statements(db_session: AsyncSession, monkeypatch) -> list[str]:
    """SELECTs issued through ``db_session``, rendered as PostgreSQL SQL.

    SQLite drops ``FOR UPDATE``; compiling for PostgreSQL shows which reads
    take row locks in production.
    """
    statements: list[str] = []
    execute = db_session.execute

    async def _recording_execute(statement, *args, **kwargs):
        if isinstance(statement, Select):
            statements.append(str(statement.compile(dialect=postgresql.dialect())))
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", _recording_execute)
    return statements
