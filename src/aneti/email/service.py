"""
E-mail delivery with a provider abstraction.

SMTP (aiosmtplib) by default, or the Resend HTTP API. Providers log and
return False on failure; callers decide whether a lost e-mail matters.
"""

from __future__ import annotations

import hashlib
import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Any

import aiosmtplib
import httpx
import structlog

from aneti.config import get_settings
from aneti.email.templates import application_decision, password_changed, password_reset

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

# name -> (template function, context keys passed positionally in order)
_TEMPLATE_REGISTRY: dict[str, tuple[Callable[..., tuple[str, str, str]], tuple[str, ...]]] = {
    "password_reset": (password_reset, ("reset_url", "full_name", "expires_minutes")),
    "password_changed": (password_changed, ("full_name",)),
    "application_decision": (
        application_decision,
        ("full_name", "status", "plan_name", "notes", "action_url"),
    ),
}

RESEND_API_URL = "https://api.resend.com/emails"


class BaseEmailProvider(ABC):
    """Abstract base class for e-mail delivery providers."""

    @abstractmethod
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send an e-mail. Returns True on success."""
        ...


class SMTPProvider(BaseEmailProvider):
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls

    def _build_message(self, to_email: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        msg = self._build_message(to_email, subject, html_body, text_body)
        try:
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.exception("email_send_failed", to=to_email, provider="smtp")
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider="smtp")
        return True


class ResendProvider(BaseEmailProvider):
    def __init__(self, api_key: str, from_address: str, from_name: str) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": f"{self.from_name} <{self.from_address}>",
                        "to": [to_email],
                        "subject": subject,
                        "html": html_body,
                        "text": text_body,
                    },
                )
                response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("email_send_failed", to=to_email, provider="resend")
            return False
        logger.info("email_sent", to=to_email, subject=subject, provider="resend")
        return True


def _create_provider() -> BaseEmailProvider:
    """Create the provider named by ``email_provider``."""
    settings = get_settings()
    provider_name = settings.email_provider.lower()

    if provider_name == "smtp":
        return SMTPProvider(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
            use_tls=settings.smtp_use_tls,
        )
    if provider_name == "resend":
        return ResendProvider(
            api_key=settings.resend_api_key,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    msg = f"Unsupported email provider: {provider_name}"
    raise ValueError(msg)


def render_template(template_name: str, context: dict[str, Any]) -> tuple[str, str, str]:
    """
    Render a registered template to (subject, html_body, text_body).

    Context keys the template does not know are ignored; missing ones fall
    back to the template's defaults.

    Raises:
        ValueError: If the template name is unknown.
    """
    entry = _TEMPLATE_REGISTRY.get(template_name)
    if entry is None:
        msg = f"Unknown template: {template_name}"
        raise ValueError(msg)
    template_func, keys = entry
    kwargs = {key: context[key] for key in keys if key in context}
    return template_func(**kwargs)


class EmailService:
    """Rate-limited, template-aware front for a provider."""

    RATE_LIMIT_WINDOW = 3600

    def __init__(
        self,
        provider: BaseEmailProvider | None = None,
        redis: Redis | None = None,
        max_per_hour: int | None = None,
    ) -> None:
        self.provider = provider or _create_provider()
        self._redis = redis
        self.max_per_hour = max_per_hour if max_per_hour is not None else get_settings().email_rate_limit_per_hour

    async def _check_rate_limit(self, email: str) -> bool:
        """True if another e-mail may go to this address in the current hour."""
        if self._redis is None:
            return True
        key = f"email_rate:{hashlib.sha256(email.lower().encode()).hexdigest()}"
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, self.RATE_LIMIT_WINDOW)
        return count <= self.max_per_hour

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send unless rate limited. Returns True if the provider accepted it."""
        if not await self._check_rate_limit(to):
            logger.warning("email_rate_limited", to=to, subject=subject)
            return False
        return await self.provider.send(to, subject, html_body, text_body)

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        subject, html_body, text_body = render_template(template_name, context)
        return await self.send_email(to, subject, html_body, text_body)


# Module-level singleton
_email_service: EmailService | None = None


def get_email_service(redis: Redis | None = None) -> EmailService:
    """Get or create the e-mail service singleton."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=redis)
    return _email_service


def reset_email_service() -> None:
    """Drop the singleton (settings changed, tests)."""
    global _email_service  # noqa: PLW0603
    _email_service = None
