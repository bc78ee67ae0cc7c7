"""Redis connection pool shared by rate limiting, login lockout and reset tokens."""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Open the pool from a redis:// URL."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


def use_redis(client: redis.Redis | None) -> None:
    """Install an already-built client (fakeredis in tests, a sentinel client in ops)."""
    global _pool  # noqa: PLW0603
    _pool = client


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Return the active client; raises if neither init_redis nor use_redis ran."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool
