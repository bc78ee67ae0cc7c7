"""Middleware tests: request ID, rate limiting, CORS, error handling."""

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from aneti.errors import NotFound
from aneti.middleware.error_handler import setup_error_handlers
from aneti.middleware.rate_limit import RateLimitMiddleware
from aneti.redis_client import use_redis


@pytest_asyncio.fixture
async def small_app_client():
    """A bare app with a 3-request budget and routes that fail on purpose."""
    app = FastAPI()
    setup_error_handlers(app)
    app.add_middleware(RateLimitMiddleware, requests_per_window=3, window_seconds=3600)

    @app.get("/ping")
    async def ping() -> dict[str, str]:
        return {"pong": "ok"}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/missing")
    async def missing() -> None:
        raise NotFound("Sócio não encontrado")

    @app.get("/boom")
    async def boom() -> None:
        raise ZeroDivisionError("boom")

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "req-aneti-123"})
    assert response.headers["x-request-id"] == "req-aneti-123"


@pytest.mark.asyncio
async def test_rate_limit_headers(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.headers["x-ratelimit-limit"] == "100000"
    assert response.headers["x-ratelimit-remaining"] == "99999"


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(small_app_client: AsyncClient) -> None:
    """Fourth request in the window returns 429 with Retry-After."""
    for expected_remaining in ("2", "1", "0"):
        response = await small_app_client.get("/ping")
        assert response.status_code == 200
        assert response.headers["x-ratelimit-remaining"] == expected_remaining

    response = await small_app_client.get("/ping")
    assert response.status_code == 429
    assert response.headers["retry-after"] == "3600"
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(small_app_client: AsyncClient) -> None:
    for _ in range(10):
        response = await small_app_client.get("/health")
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_rate_limit_fails_open_without_redis(small_app_client: AsyncClient) -> None:
    use_redis(None)
    for _ in range(5):
        response = await small_app_client.get("/ping")
        assert response.status_code == 200
        assert "x-ratelimit-remaining" not in response.headers


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json()["detail"] == "Not Found"


@pytest.mark.asyncio
async def test_domain_error_mapped(small_app_client: AsyncClient) -> None:
    response = await small_app_client.get("/missing")
    assert response.status_code == 404
    assert response.json() == {"detail": "Sócio não encontrado", "error": "NotFound"}


@pytest.mark.asyncio
async def test_unhandled_error_returns_json(small_app_client: AsyncClient) -> None:
    response = await small_app_client.get("/boom")
    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
