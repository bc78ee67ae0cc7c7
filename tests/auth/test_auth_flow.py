"""End-to-end tests for /api/v1/auth."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


REGISTER_BODY = {
    "username": "carlos",
    "email": "Carlos@Exemplo.com.br",
    "password": "SenhaForte123",
    "full_name": "Carlos Pereira",
    "city": "Curitiba",
    "state": "PR",
    "area": "Infraestrutura",
}


async def _register(client: AsyncClient) -> dict:
    response = await client.post("/api/v1/auth/register", json=REGISTER_BODY)
    assert response.status_code == 201, response.text
    return response.json()


class TestRegister:
    async def test_register_returns_token(self, client: AsyncClient):
        data = await _register(client)
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["expires_in"] > 0
        user = data["user"]
        assert user["email"] == "carlos@exemplo.com.br"
        assert user["role"] == "member"
        assert user["is_approved"] is False
        assert user["plan_name"] is None

    async def test_register_duplicate_email(self, client: AsyncClient):
        await _register(client)
        response = await client.post(
            "/api/v1/auth/register", json={**REGISTER_BODY, "username": "carlos2"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    async def test_register_invalid_username(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register", json={**REGISTER_BODY, "username": "carlos pereira"}
        )
        assert response.status_code == 422

    async def test_register_weak_password(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/register", json={**REGISTER_BODY, "password": "abc"})
        assert response.status_code == 400
        assert "senha" in response.json()["detail"].lower()

    async def test_welcome_notification_after_register(self, client: AsyncClient):
        data = await _register(client)
        headers = {"Authorization": f"Bearer {data['access_token']}"}
        response = await client.get("/api/v1/notifications", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["notifications"][0]["type"] == "welcome"


class TestLoginAndMe:
    async def test_login_with_username(self, client: AsyncClient):
        await _register(client)
        response = await client.post(
            "/api/v1/auth/login", json={"login": "carlos", "password": "SenhaForte123"}
        )
        assert response.status_code == 200
        assert response.json()["user"]["username"] == "carlos"

    async def test_login_with_email(self, client: AsyncClient):
        await _register(client)
        response = await client.post(
            "/api/v1/auth/login", json={"login": "carlos@exemplo.com.br", "password": "SenhaForte123"}
        )
        assert response.status_code == 200

    async def test_login_wrong_password(self, client: AsyncClient):
        await _register(client)
        response = await client.post(
            "/api/v1/auth/login", json={"login": "carlos", "password": "Errada12345"}
        )
        assert response.status_code == 401

    async def test_me(self, client: AsyncClient):
        data = await _register(client)
        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert response.status_code == 200
        assert response.json()["full_name"] == "Carlos Pereira"

    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code in (401, 403)

    async def test_me_with_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401

    async def test_deactivated_user_rejected(self, client: AsyncClient, db_session, user_factory, headers_for):
        user = await user_factory("suspenso", is_active=False)
        await db_session.commit()
        response = await client.get("/api/v1/auth/me", headers=headers_for(user))
        assert response.status_code == 403
        assert response.json()["detail"] == "Conta desativada"


class TestPasswordReset:
    async def test_forgot_password_sends_email(self, client: AsyncClient, mock_email_service):
        await _register(client)
        response = await client.post("/api/v1/auth/forgot-password", json={"email": "carlos@exemplo.com.br"})
        assert response.status_code == 200
        mock_email_service.send_template.assert_awaited_once()
        kwargs = mock_email_service.send_template.await_args.kwargs
        assert kwargs["to"] == "carlos@exemplo.com.br"
        assert kwargs["template_name"] == "password_reset"
        assert "/auth/reset-password?token=" in kwargs["context"]["reset_url"]

    async def test_forgot_password_unknown_email_200(self, client: AsyncClient, mock_email_service):
        response = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@exemplo.com.br"})
        assert response.status_code == 200
        mock_email_service.send_template.assert_not_awaited()

    async def test_forgot_password_survives_email_failure(self, client: AsyncClient, mock_email_service):
        await _register(client)
        mock_email_service.send_template.side_effect = RuntimeError("smtp down")
        response = await client.post("/api/v1/auth/forgot-password", json={"email": "carlos@exemplo.com.br"})
        assert response.status_code == 200

    async def test_full_reset_flow(self, client: AsyncClient, mock_email_service):
        await _register(client)
        await client.post("/api/v1/auth/forgot-password", json={"email": "carlos@exemplo.com.br"})
        reset_url = mock_email_service.send_template.await_args.kwargs["context"]["reset_url"]
        token = reset_url.split("token=", 1)[1]

        response = await client.post(
            "/api/v1/auth/reset-password", json={"token": token, "new_password": "NovaSenha456"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "password_reset_complete"
        assert mock_email_service.send_template.await_args.kwargs["template_name"] == "password_changed"

        login = await client.post("/api/v1/auth/login", json={"login": "carlos", "password": "NovaSenha456"})
        assert login.status_code == 200

        reused = await client.post(
            "/api/v1/auth/reset-password", json={"token": token, "new_password": "OutraSenha789"}
        )
        assert reused.status_code == 400

    async def test_reset_password_invalid_token(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/reset-password",
            json={"token": "definitely_not_a_valid_token", "new_password": "NovaSenha456"},
        )
        assert response.status_code == 400
        assert "Token inválido" in response.json()["detail"]


class TestChangePassword:
    async def test_change_password(self, client: AsyncClient, mock_email_service):
        data = await _register(client)
        headers = {"Authorization": f"Bearer {data['access_token']}"}
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "SenhaForte123", "new_password": "NovaSenha456"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json() == {"status": "password_changed"}
        mock_email_service.send_template.assert_awaited_once()

    async def test_change_password_wrong_current(self, client: AsyncClient):
        data = await _register(client)
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "Errada12345", "new_password": "NovaSenha456"},
            headers={"Authorization": f"Bearer {data['access_token']}"},
        )
        assert response.status_code == 401
