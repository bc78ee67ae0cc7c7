"""Tests for notification endpoints and the admin broadcast."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import AsyncClient

from aneti.social.notification_service import create_notification


pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def inbox(db_session, admin, member):
    """``member`` with three unread notifications."""
    for i in range(3):
        await create_notification(db_session, member.id, "welcome", f"Aviso {i}", "Mensagem")
    await db_session.commit()
    return member


class TestNotificationEndpoints:
    async def test_list_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/notifications")
        assert response.status_code in (401, 403)

    async def test_list(self, client: AsyncClient, inbox, headers_for):
        response = await client.get("/api/v1/notifications?per_page=2", headers=headers_for(inbox))
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["per_page"] == 2
        assert [n["title"] for n in data["notifications"]] == ["Aviso 2", "Aviso 1"]
        assert isinstance(data["notifications"][0]["id"], str)
        assert data["notifications"][0]["read"] is False

    async def test_per_page_bounds(self, client: AsyncClient, inbox, headers_for):
        response = await client.get("/api/v1/notifications?per_page=500", headers=headers_for(inbox))
        assert response.status_code == 422

    async def test_mark_one_read(self, client: AsyncClient, inbox, headers_for):
        listing = await client.get("/api/v1/notifications", headers=headers_for(inbox))
        notification_id = listing.json()["notifications"][0]["id"]

        response = await client.post(f"/api/v1/notifications/{notification_id}/read", headers=headers_for(inbox))
        assert response.status_code == 200

        count = await client.get("/api/v1/notifications/unread-count", headers=headers_for(inbox))
        assert count.json()["unread_count"] == 2
        unread = await client.get("/api/v1/notifications?unread_only=true", headers=headers_for(inbox))
        assert notification_id not in [n["id"] for n in unread.json()["notifications"]]

    async def test_mark_unknown_read(self, client: AsyncClient, inbox, headers_for):
        response = await client.post("/api/v1/notifications/99999/read", headers=headers_for(inbox))
        assert response.status_code == 404

    async def test_cannot_mark_other_users_notification(self, client: AsyncClient, inbox, admin, headers_for):
        listing = await client.get("/api/v1/notifications", headers=headers_for(inbox))
        notification_id = listing.json()["notifications"][0]["id"]
        response = await client.post(f"/api/v1/notifications/{notification_id}/read", headers=headers_for(admin))
        assert response.status_code == 404

    async def test_mark_all_read(self, client: AsyncClient, inbox, headers_for):
        response = await client.post("/api/v1/notifications/read-all", headers=headers_for(inbox))
        assert response.status_code == 200
        assert response.json()["count"] == 3
        count = await client.get("/api/v1/notifications/unread-count", headers=headers_for(inbox))
        assert count.json()["unread_count"] == 0


class TestBroadcastEndpoint:
    @pytest_asyncio.fixture
    async def audience(self, db_session, admin, user_factory, plans):
        """Five members: 0, 2 and 4 approved; 0 and 1 on Pleno."""
        members = []
        for i in range(5):
            plan = plans[2] if i < 2 else None
            members.append(await user_factory(f"socio{i}", is_approved=i % 2 == 0, plan=plan))
        await db_session.commit()
        return admin, members, plans

    async def test_broadcast_all(self, client: AsyncClient, audience, headers_for):
        admin, members, _ = audience
        response = await client.post(
            "/api/v1/admin/notifications/broadcast",
            json={"title": "Assembleia", "message": "Sexta às 19h", "priority": "high"},
            headers=headers_for(admin),
        )
        assert response.status_code == 200
        assert response.json() == {"sent_to_count": 5, "failed_count": 0}

        inbox = await client.get("/api/v1/notifications", headers=headers_for(members[0]))
        (notification,) = inbox.json()["notifications"]
        assert notification["type"] == "admin_broadcast"
        assert notification["priority"] == "high"
        assert notification["actor_id"] == admin.id

    async def test_broadcast_approved(self, client: AsyncClient, audience, headers_for):
        admin, _, _ = audience
        response = await client.post(
            "/api/v1/admin/notifications/broadcast",
            json={"title": "Aprovados", "message": "Olá", "target_type": "approved_members"},
            headers=headers_for(admin),
        )
        assert response.json()["sent_to_count"] == 3

    async def test_broadcast_plan(self, client: AsyncClient, audience, headers_for):
        admin, _, plans = audience
        response = await client.post(
            "/api/v1/admin/notifications/broadcast",
            json={
                "title": "Pleno",
                "message": "Novidades do plano",
                "target_type": "plan_members",
                "target_value": str(plans[2].id),
            },
            headers=headers_for(admin),
        )
        assert response.json()["sent_to_count"] == 2

    async def test_unknown_target_type(self, client: AsyncClient, audience, headers_for):
        admin, _, _ = audience
        response = await client.post(
            "/api/v1/admin/notifications/broadcast",
            json={"title": "x", "message": "y", "target_type": "everyone"},
            headers=headers_for(admin),
        )
        assert response.status_code == 400

    async def test_unknown_group(self, client: AsyncClient, audience, headers_for):
        admin, _, _ = audience
        response = await client.post(
            "/api/v1/admin/notifications/broadcast",
            json={"title": "x", "message": "y", "target_type": "group_members", "target_value": "77"},
            headers=headers_for(admin),
        )
        assert response.status_code == 400
        assert "Grupo" in response.json()["detail"]

    async def test_member_cannot_broadcast(self, client: AsyncClient, audience, headers_for):
        _, members, _ = audience
        response = await client.post(
            "/api/v1/admin/notifications/broadcast",
            json={"title": "Spam", "message": "Compre já"},
            headers=headers_for(members[0]),
        )
        assert response.status_code == 403

    async def test_title_too_long(self, client: AsyncClient, audience, headers_for):
        admin, _, _ = audience
        response = await client.post(
            "/api/v1/admin/notifications/broadcast",
            json={"title": "x" * 101, "message": "y"},
            headers=headers_for(admin),
        )
        assert response.status_code == 422
