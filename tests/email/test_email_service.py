"""Tests for e-mail templates and the rate-limited e-mail service."""

from unittest.mock import AsyncMock, patch

import aiosmtplib
import httpx
import pytest

from aneti.email.service import (
    _TEMPLATE_REGISTRY,
    BaseEmailProvider,
    EmailService,
    ResendProvider,
    SMTPProvider,
    _create_provider,
    get_email_service,
    render_template,
    reset_email_service,
)
from aneti.email.templates import application_decision, password_changed, password_reset


class TestEmailTemplates:
    def test_password_reset_returns_tuple(self):
        subject, html, text = password_reset("https://aneti.org.br/auth/reset-password?token=abc", "Ana Lima")
        assert "senha" in subject.lower()
        assert "token=abc" in html
        assert "token=abc" in text
        assert "Ana Lima" in text
        assert "15 minutos" in text

    def test_password_reset_expiry_in_hours(self):
        _, _, text = password_reset("https://x", expires_minutes=60)
        assert "1 hora" in text

    def test_password_changed(self):
        subject, html, text = password_changed("Ana Lima")
        assert subject == "Sua senha foi alterada - ANETI"
        assert "Ana Lima" in html
        assert "Não foi você?" in html

    def test_names_are_escaped_in_html(self):
        _, html, text = password_changed("<script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "<script>" in text

    def test_application_approved(self):
        subject, html, text = application_decision("Ana", "approved", "Pleno", action_url="https://x/app")
        assert "aprovada" in subject
        assert "Pleno" in text
        assert "https://x/app" in html

    def test_application_rejected_includes_notes(self):
        subject, html, text = application_decision("Ana", "rejected", "Pleno", notes="Diploma ilegível")
        assert "Diploma ilegível" in html
        assert "Diploma ilegível" in text
        assert "recurso" in text.lower()

    def test_documents_requested(self):
        subject, _, text = application_decision("Ana", "documents_requested", "Sênior", notes="Envie o CV")
        assert "Documentos" in subject
        assert "Envie o CV" in text

    def test_unknown_decision(self):
        with pytest.raises(ValueError, match="Unknown application decision"):
            application_decision("Ana", "pending", "Pleno")


class TestRenderTemplate:
    def test_registry(self):
        assert set(_TEMPLATE_REGISTRY) == {"password_reset", "password_changed", "application_decision"}

    def test_render_ignores_unknown_keys(self):
        subject, _, _ = render_template("password_changed", {"full_name": "Ana", "extra": 1})
        assert "senha" in subject.lower()

    def test_render_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown template"):
            render_template("newsletter", {})


class _RecordingProvider(BaseEmailProvider):
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        self.sent.append((to_email, subject))
        return True


class TestEmailService:
    @pytest.mark.asyncio
    async def test_send_template(self):
        provider = _RecordingProvider()
        service = EmailService(provider=provider, redis=None)
        ok = await service.send_template(
            to="ana@exemplo.com.br", template_name="password_changed", context={"full_name": "Ana"}
        )
        assert ok is True
        assert provider.sent == [("ana@exemplo.com.br", "Sua senha foi alterada - ANETI")]

    @pytest.mark.asyncio
    async def test_rate_limit_per_address(self, redis_client):
        provider = _RecordingProvider()
        service = EmailService(provider=provider, redis=redis_client, max_per_hour=2)
        results = [await service.send_email("ana@exemplo.com.br", "s", "<p>h</p>", "t") for _ in range(3)]
        assert results == [True, True, False]
        assert len(provider.sent) == 2
        # the limit is per address, case-insensitive
        assert await service.send_email("ANA@exemplo.com.br", "s", "h", "t") is False
        assert await service.send_email("bia@exemplo.com.br", "s", "h", "t") is True

    @pytest.mark.asyncio
    async def test_rate_limit_window_expires(self, redis_client):
        service = EmailService(provider=_RecordingProvider(), redis=redis_client, max_per_hour=5)
        await service.send_email("ana@exemplo.com.br", "s", "h", "t")
        (key,) = await redis_client.keys("email_rate:*")
        assert 0 < await redis_client.ttl(key) <= EmailService.RATE_LIMIT_WINDOW

    def test_singleton(self, monkeypatch):
        monkeypatch.setattr("aneti.email.service._email_service", None)
        first = get_email_service()
        assert get_email_service() is first
        assert isinstance(first.provider, SMTPProvider)
        reset_email_service()


class TestProviders:
    def test_create_resend_provider(self, monkeypatch):
        from aneti.config import get_settings

        monkeypatch.setattr(get_settings(), "email_provider", "resend")
        assert isinstance(_create_provider(), ResendProvider)

    def test_unsupported_provider(self, monkeypatch):
        from aneti.config import get_settings

        monkeypatch.setattr(get_settings(), "email_provider", "pigeon")
        with pytest.raises(ValueError, match="Unsupported email provider"):
            _create_provider()

    @pytest.mark.asyncio
    async def test_smtp_success(self):
        provider = SMTPProvider("smtp.local", 587, "u", "p", "naoresponda@aneti.org.br", "ANETI")
        with patch("aneti.email.service.aiosmtplib.send", new=AsyncMock()) as send:
            assert await provider.send("ana@exemplo.com.br", "Assunto", "<p>oi</p>", "oi") is True
        message = send.await_args.args[0]
        assert message["To"] == "ana@exemplo.com.br"
        assert message["From"] == "ANETI <naoresponda@aneti.org.br>"
        assert send.await_args.kwargs["hostname"] == "smtp.local"

    @pytest.mark.asyncio
    async def test_smtp_failure_returns_false(self):
        provider = SMTPProvider("smtp.local", 587, "", "", "naoresponda@aneti.org.br", "ANETI", use_tls=False)
        failing = AsyncMock(side_effect=aiosmtplib.SMTPConnectError("refused"))
        with patch("aneti.email.service.aiosmtplib.send", new=failing):
            assert await provider.send("ana@exemplo.com.br", "Assunto", "h", "t") is False

    @pytest.mark.asyncio
    async def test_resend_failure_returns_false(self):
        provider = ResendProvider("re_test", "naoresponda@aneti.org.br", "ANETI")
        failing = AsyncMock(side_effect=httpx.ConnectError("offline"))
        with patch("aneti.email.service.httpx.AsyncClient.post", new=failing):
            assert await provider.send("ana@exemplo.com.br", "Assunto", "h", "t") is False
