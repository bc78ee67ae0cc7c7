"""Tests for the Redis-backed password-reset token store."""

import pytest

from aneti.auth.reset_tokens import ResetTokenStore


pytestmark = pytest.mark.asyncio


class TestResetTokenStore:
    async def test_issue_and_consume(self, redis_client):
        store = ResetTokenStore(redis_client, ttl_seconds=900)
        token = await store.issue(7)
        assert len(token) == 64
        assert await store.consume(token) == 7

    async def test_token_is_single_use(self, redis_client):
        store = ResetTokenStore(redis_client, ttl_seconds=900)
        token = await store.issue(7)
        await store.consume(token)
        assert await store.consume(token) is None

    async def test_unknown_token(self, redis_client):
        store = ResetTokenStore(redis_client, ttl_seconds=900)
        assert await store.consume("nope") is None

    async def test_only_hash_is_stored(self, redis_client):
        store = ResetTokenStore(redis_client, ttl_seconds=900)
        token = await store.issue(5)
        keys = await redis_client.keys("pwreset:*")
        assert len(keys) == 1
        assert token not in keys[0]

    async def test_ttl_applied(self, redis_client):
        store = ResetTokenStore(redis_client, ttl_seconds=900)
        await store.issue(5)
        (key,) = await redis_client.keys("pwreset:*")
        ttl = await redis_client.ttl(key)
        assert 0 < ttl <= 900
