"""
Envío de emails a partir de plantillas HTML.

Las plantillas viven en ``lawnconnect/templates/emails`` y usan la sintaxis de
``string.Template`` ($name). Si no hay SMTP_HOST configurado (desarrollo) el
email se registra en el log en lugar de enviarse.
"""
from datetime import datetime
from email.message import EmailMessage
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional
import asyncio
import logging
import smtplib

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates" / "emails"
SMTP_TIMEOUT_SECONDS = 10


class EmailService:
    def __init__(self, settings: Settings, templates_dir: Path = TEMPLATES_DIR):
        self.settings = settings
        self.templates_dir = templates_dir

    def render(self, template_name: str, context: Optional[Dict[str, Any]] = None) -> str:
        data = dict(context or {})
        data.setdefault("app_name", self.settings.app_name)
        data.setdefault("login_url", self.settings.frontend_base_url)
        data.setdefault("current_year", datetime.utcnow().year)
        raw = (self.templates_dir / template_name).read_text(encoding="utf-8")
        return Template(raw).safe_substitute(data)

    def _build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.settings.from_email
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("Este mensaje requiere un cliente de correo con soporte HTML.")
        msg.add_alternative(html, subtype="html")
        return msg

    def _send_smtp(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
            smtp.starttls()
            if self.settings.smtp_user:
                smtp.login(self.settings.smtp_user, self.settings.smtp_pass or "")
            smtp.send_message(msg)

    async def send(self, to: str, subject: str, template_name: str, context: Optional[Dict[str, Any]] = None) -> None:
        html = self.render(template_name, context)
        msg = self._build_message(to, subject, html)
        if not self.settings.smtp_host:
            logger.info(f"[email sin SMTP] para={to} asunto={subject!r}")
            logger.debug(html)
            return
        # smtplib es bloqueante: se ejecuta en un hilo aparte
        await asyncio.to_thread(self._send_smtp, msg)
        logger.info(f"Email enviado a {to}: {subject!r}")


def get_email_service() -> EmailService:
    return EmailService(get_settings())
