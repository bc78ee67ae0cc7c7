"""Password-reset token store.

Tokens live in Redis under ``pwreset:<sha256(token)>`` with a TTL, so expiry is
handled by Redis and every API worker sees the same tokens. The store is handed
to the auth flows as a dependency instead of living as module state.
"""

from __future__ import annotations

import hashlib
import secrets
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from redis.asyncio import Redis

_KEY_PREFIX = "pwreset:"


def _key(token: str) -> str:
    return _KEY_PREFIX + hashlib.sha256(token.encode()).hexdigest()


class ResetTokenStore:
    """Expiring token -> user_id map."""

    def __init__(self, redis: Redis, ttl_seconds: int) -> None:
        self._redis = redis
        self.ttl_seconds = ttl_seconds

    async def issue(self, user_id: int) -> str:
        """Create a token for ``user_id``. Only the hash is stored."""
        token = secrets.token_hex(32)
        await self._redis.set(_key(token), str(user_id), ex=self.ttl_seconds)
        return token

    async def consume(self, token: str) -> int | None:
        """Return the user id and delete the token; None if unknown or expired."""
        value = await self._redis.getdel(_key(token))
        return int(value) if value is not None else None
