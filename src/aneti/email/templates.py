"""
E-mail templates for ANETI.

Inline CSS only, light layout with the association's blue. User-supplied text
(names, admin reasons) is HTML-escaped in the HTML body.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape

APP_NAME = "ANETI"
APP_FULL_NAME = "Associação Nacional dos Especialistas em TI"

BG_PAGE = "#F3F4F6"
BG_CARD = "#FFFFFF"
BLUE = "#1D4ED8"
GREEN = "#059669"
RED = "#DC2626"
TEXT_PRIMARY = "#111827"
TEXT_SECONDARY = "#4B5563"
BORDER = "#E5E7EB"

SIGNATURE = "-- Equipe ANETI"


def _base_layout(content: str) -> str:
    """Wrap content in the base e-mail layout."""
    return f"""\
<!DOCTYPE html>
<html lang="pt-BR">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{APP_NAME}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: Arial, Helvetica, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 26px; font-weight: 700; color: {BLUE};">{APP_NAME}</span><br>
                            <span style="font-size: 12px; color: {TEXT_SECONDARY};">{APP_FULL_NAME}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 8px; padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                Este e-mail foi enviado pela {APP_NAME}.<br>
                                Se você não esperava esta mensagem, pode ignorá-la com segurança.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str, color: str = BLUE) -> str:
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 24px auto;">
    <tr>
        <td align="center" style="background-color: {color}; border-radius: 6px;">
            <a href="{escape(url)}" target="_blank" style="display: inline-block; padding: 12px 28px; color: #FFFFFF; font-size: 15px; font-weight: 600; text-decoration: none;">
                {label}
            </a>
        </td>
    </tr>
</table>"""


def _paragraph(text: str, size: int = 15) -> str:
    return f'<p style="color: {TEXT_SECONDARY}; font-size: {size}px; line-height: 1.6; margin: 0 0 16px 0;">{text}</p>'


def _heading(text: str) -> str:
    return f'<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;">{text}</h1>'


def _minutes_text(minutes: int) -> str:
    if minutes == 60:
        return "1 hora"
    if minutes == 1:
        return "1 minuto"
    return f"{minutes} minutos"


def password_reset(reset_url: str, full_name: str | None = None, expires_minutes: int = 15) -> tuple[str, str, str]:
    """Password reset link."""
    name = full_name or "associado(a)"
    expires = _minutes_text(expires_minutes)
    subject = "Redefinição de senha - ANETI"
    content = (
        _heading("Redefinir sua senha")
        + _paragraph(f"Olá, {escape(name)}.")
        + _paragraph("Recebemos um pedido para redefinir a senha da sua conta na ANETI. Clique no botão abaixo para escolher uma nova senha.")
        + _button(reset_url, "Redefinir senha")
        + _paragraph(
            f"Este link expira em <strong style=\"color: {TEXT_PRIMARY};\">{expires}</strong> e só pode ser usado uma vez. "
            "Se você não fez este pedido, sua senha continua a mesma.",
            size=13,
        )
        + f'<hr style="border: none; border-top: 1px solid {BORDER}; margin: 24px 0;">'
        + _paragraph(
            f'Se o botão não funcionar, copie e cole este endereço no navegador:<br>'
            f'<a href="{escape(reset_url)}" style="color: {BLUE}; word-break: break-all;">{escape(reset_url)}</a>',
            size=12,
        )
    )
    text_body = (
        f"Olá, {name}.\n\n"
        f"Recebemos um pedido para redefinir a senha da sua conta na ANETI.\n\n"
        f"Use este link para escolher uma nova senha:\n\n{reset_url}\n\n"
        f"O link expira em {expires} e só pode ser usado uma vez.\n\n"
        f"Se você não fez este pedido, ignore este e-mail. Sua senha continua a mesma.\n\n"
        f"{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def password_changed(full_name: str | None = None) -> tuple[str, str, str]:
    """Confirmation after a password change or reset."""
    name = full_name or "associado(a)"
    subject = "Sua senha foi alterada - ANETI"
    content = (
        _heading("Senha alterada")
        + _paragraph(f"Olá, {escape(name)}.")
        + _paragraph("A senha da sua conta na ANETI foi alterada com sucesso.")
        + f"""\
<div style="background-color: #FEF2F2; border: 1px solid {BORDER}; border-radius: 6px; padding: 16px; margin: 24px 0;">
    <p style="color: {RED}; font-size: 14px; font-weight: 600; margin: 0 0 8px 0;">Não foi você?</p>
    <p style="color: {TEXT_SECONDARY}; font-size: 14px; line-height: 1.5; margin: 0;">
        Sua conta pode estar comprometida. Redefina sua senha e fale com a secretaria da ANETI imediatamente.
    </p>
</div>"""
    )
    text_body = (
        f"Olá, {name}.\n\n"
        f"A senha da sua conta na ANETI foi alterada com sucesso.\n\n"
        f"Se não foi você, sua conta pode estar comprometida. Redefina sua senha "
        f"e fale com a secretaria da ANETI imediatamente.\n\n"
        f"{SIGNATURE}"
    )
    return subject, _base_layout(content), text_body


def application_decision(
    full_name: str | None,
    status: str,
    plan_name: str,
    notes: str | None = None,
    action_url: str = "",
) -> tuple[str, str, str]:
    """
    Outcome of an admin review: ``approved``, ``rejected`` or ``documents_requested``.

    Raises:
        ValueError: for any other status.
    """
    name = full_name or "associado(a)"
    if status == "approved":
        subject = "Sua associação foi aprovada - ANETI"
        heading = "Associação aprovada!"
        summary = f"Sua solicitação de associação ao plano {plan_name} foi aprovada. Seja bem-vindo(a)!"
        label, color = "Acessar meu perfil", GREEN
    elif status == "rejected":
        subject = "Sua solicitação de associação - ANETI"
        heading = "Solicitação não aprovada"
        summary = f"Sua solicitação de associação ao plano {plan_name} foi rejeitada. Você pode enviar um recurso."
        label, color = "Enviar recurso", BLUE
    elif status == "documents_requested":
        subject = "Documentos adicionais necessários - ANETI"
        heading = "Precisamos de mais documentos"
        summary = f"Para concluir a análise da sua solicitação ao plano {plan_name}, precisamos de documentos adicionais."
        label, color = "Enviar documentos", BLUE
    else:
        msg = f"Unknown application decision: {status}"
        raise ValueError(msg)

    content = _heading(heading) + _paragraph(f"Olá, {escape(name)}.") + _paragraph(escape(summary))
    if notes:
        content += f"""\
<div style="background-color: {BG_PAGE}; border-left: 4px solid {color}; padding: 12px 16px; margin: 16px 0;">
    <p style="color: {TEXT_PRIMARY}; font-size: 14px; line-height: 1.5; margin: 0;">{escape(notes)}</p>
</div>"""
    if action_url:
        content += _button(action_url, label, color)

    text_body = f"Olá, {name}.\n\n{summary}\n\n"
    if notes:
        text_body += f"Observações da análise:\n{notes}\n\n"
    if action_url:
        text_body += f"{label}: {action_url}\n\n"
    text_body += SIGNATURE
    return subject, _base_layout(content), text_body
