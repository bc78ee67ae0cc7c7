"""Social endpoints: connections, groups and the feed."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import AsyncClient


pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def people(db_session, admin, member, user_factory):
    bruno = await user_factory("bruno", full_name="Bruno Costa")
    await db_session.commit()
    return admin, member, bruno


class TestConnectionsApi:
    async def test_request_accept_list(self, client: AsyncClient, people, headers_for):
        _, maria, bruno = people
        created = await client.post(
            "/api/v1/connections", json={"receiver_id": bruno.id}, headers=headers_for(maria)
        )
        assert created.status_code == 201
        request_id = created.json()["id"]

        pending = await client.get("/api/v1/connections/pending", headers=headers_for(bruno))
        assert [r["id"] for r in pending.json()] == [request_id]

        accepted = await client.post(f"/api/v1/connections/{request_id}/accept", headers=headers_for(bruno))
        assert accepted.json()["status"] == "accepted"

        connections = await client.get("/api/v1/connections", headers=headers_for(maria))
        assert [c["username"] for c in connections.json()] == ["bruno"]

    async def test_requester_cannot_accept(self, client: AsyncClient, people, headers_for):
        _, maria, bruno = people
        created = await client.post(
            "/api/v1/connections", json={"receiver_id": bruno.id}, headers=headers_for(maria)
        )
        response = await client.post(
            f"/api/v1/connections/{created.json()['id']}/accept", headers=headers_for(maria)
        )
        assert response.status_code == 403

    async def test_accept_rejected_conflicts(self, client: AsyncClient, people, headers_for):
        _, maria, bruno = people
        created = await client.post(
            "/api/v1/connections", json={"receiver_id": bruno.id}, headers=headers_for(maria)
        )
        request_id = created.json()["id"]
        await client.post(f"/api/v1/connections/{request_id}/reject", headers=headers_for(bruno))
        response = await client.post(f"/api/v1/connections/{request_id}/accept", headers=headers_for(bruno))
        assert response.status_code == 409
        assert response.json()["current_status"] == "rejected"


class TestGroupsApi:
    async def test_create_join_list(self, client: AsyncClient, people, headers_for):
        admin, maria, _ = people
        created = await client.post(
            "/api/v1/groups", json={"name": "Dados", "description": "Engenharia de dados"}, headers=headers_for(admin)
        )
        assert created.status_code == 201
        group_id = created.json()["id"]

        joined = await client.post(f"/api/v1/groups/{group_id}/join", headers=headers_for(maria))
        assert joined.json()["status"] == "active"

        groups = await client.get("/api/v1/groups", headers=headers_for(maria))
        assert groups.json() == [
            {"id": group_id, "name": "Dados", "description": "Engenharia de dados", "member_count": 1}
        ]

    async def test_member_cannot_create_group(self, client: AsyncClient, people, headers_for):
        _, maria, _ = people
        response = await client.post("/api/v1/groups", json={"name": "Clube"}, headers=headers_for(maria))
        assert response.status_code == 403

    async def test_group_broadcast_reaches_members(self, client: AsyncClient, people, headers_for):
        admin, maria, bruno = people
        created = await client.post("/api/v1/groups", json={"name": "Dados"}, headers=headers_for(admin))
        group_id = created.json()["id"]
        await client.post(f"/api/v1/groups/{group_id}/join", headers=headers_for(maria))

        response = await client.post(
            "/api/v1/admin/notifications/broadcast",
            json={"title": "Meetup", "message": "Quinta", "target_type": "group_members", "target_value": str(group_id)},
            headers=headers_for(admin),
        )
        assert response.json()["sent_to_count"] == 1
        bruno_count = await client.get("/api/v1/notifications/unread-count", headers=headers_for(bruno))
        assert bruno_count.json()["unread_count"] == 0


class TestFeedApi:
    async def test_post_like_comment(self, client: AsyncClient, people, headers_for):
        _, maria, bruno = people
        created = await client.post(
            "/api/v1/posts", json={"content": "Alguém no meetup, @bruno?"}, headers=headers_for(maria)
        )
        assert created.status_code == 201
        post_id = created.json()["id"]
        assert created.json()["author_name"] == "Maria Silva"

        like = await client.post(f"/api/v1/posts/{post_id}/like", headers=headers_for(bruno))
        assert like.json() == {"post_id": post_id, "liked": True, "like_count": 1}

        comment = await client.post(
            f"/api/v1/posts/{post_id}/comments", json={"content": "Vou sim!"}, headers=headers_for(bruno)
        )
        assert comment.status_code == 201

        feed = await client.get("/api/v1/posts", headers=headers_for(bruno))
        (post,) = feed.json()["posts"]
        assert (post["like_count"], post["comment_count"]) == (1, 1)

        maria_inbox = await client.get("/api/v1/notifications", headers=headers_for(maria))
        assert sorted(n["type"] for n in maria_inbox.json()["notifications"]) == ["comment", "like"]
        bruno_inbox = await client.get("/api/v1/notifications", headers=headers_for(bruno))
        assert [n["type"] for n in bruno_inbox.json()["notifications"]] == ["post_mention"]

    async def test_self_like_no_notification(self, client: AsyncClient, people, headers_for):
        _, maria, _ = people
        created = await client.post("/api/v1/posts", json={"content": "Oi"}, headers=headers_for(maria))
        await client.post(f"/api/v1/posts/{created.json()['id']}/like", headers=headers_for(maria))
        count = await client.get("/api/v1/notifications/unread-count", headers=headers_for(maria))
        assert count.json()["unread_count"] == 0

    async def test_like_missing_post(self, client: AsyncClient, people, headers_for):
        _, maria, _ = people
        response = await client.post("/api/v1/posts/404/like", headers=headers_for(maria))
        assert response.status_code == 404


class TestGroupBansApi:
    async def test_ban_and_unban(self, client: AsyncClient, people, headers_for):
        admin, maria, _ = people
        created = await client.post("/api/v1/groups", json={"name": "Dados"}, headers=headers_for(admin))
        group_id = created.json()["id"]
        await client.post(f"/api/v1/groups/{group_id}/join", headers=headers_for(maria))

        banned = await client.post(f"/api/v1/groups/{group_id}/members/{maria.id}/ban", headers=headers_for(admin))
        assert banned.status_code == 200
        assert banned.json()["status"] == "banned"
        groups = await client.get("/api/v1/groups", headers=headers_for(maria))
        assert groups.json()[0]["member_count"] == 0
        rejoin = await client.post(f"/api/v1/groups/{group_id}/join", headers=headers_for(maria))
        assert rejoin.status_code == 403

        unbanned = await client.post(
            f"/api/v1/groups/{group_id}/members/{maria.id}/unban", headers=headers_for(admin)
        )
        assert unbanned.status_code == 204
        rejoin = await client.post(f"/api/v1/groups/{group_id}/join", headers=headers_for(maria))
        assert rejoin.json()["status"] == "active"

    async def test_member_cannot_ban(self, client: AsyncClient, people, headers_for):
        admin, maria, bruno = people
        created = await client.post("/api/v1/groups", json={"name": "Dados"}, headers=headers_for(admin))
        response = await client.post(
            f"/api/v1/groups/{created.json()['id']}/members/{bruno.id}/ban", headers=headers_for(maria)
        )
        assert response.status_code == 403

    async def test_unban_without_ban(self, client: AsyncClient, people, headers_for):
        admin, _, bruno = people
        created = await client.post("/api/v1/groups", json={"name": "Dados"}, headers=headers_for(admin))
        response = await client.post(
            f"/api/v1/groups/{created.json()['id']}/members/{bruno.id}/unban", headers=headers_for(admin)
        )
        assert response.status_code == 404
