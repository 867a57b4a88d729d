from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage

from app.core.config import Settings

logger = logging.getLogger(__name__)


class MailDeliveryError(RuntimeError):
    pass


def build_message(*, sender: str, to: str, subject: str, text: str, html: str | None = None) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html")
    return msg


class SmtpMailer:
    """Blocking SMTP sender with a STARTTLS/SSL fallback."""

    def __init__(
        self,
        *,
        host: str | None,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_tls: bool = True,
        fallback_ssl: bool = True,
        timeout_s: float = 15.0,
    ):
        self._host = host or ""
        self._port = port
        self._user = user
        # App passwords are often copied with spaces every 4 chars.
        self._password = password.replace(" ", "") if password else None
        self._sender = sender or user or ""
        self._use_tls = use_tls
        self._fallback_ssl = fallback_ssl
        self._timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpMailer":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.smtp_from,
            use_tls=settings.smtp_use_tls,
            fallback_ssl=settings.smtp_fallback_ssl,
        )

    @property
    def configured(self) -> bool:
        return bool(self._host and self._sender)

    @property
    def sender(self) -> str:
        return self._sender

    def _login_if_needed(self, server: smtplib.SMTP) -> None:
        if self._user and self._password:
            server.login(self._user, self._password)

    def _send_with(self, port: int, use_tls: bool, msg: EmailMessage, context: ssl.SSLContext) -> None:
        if use_tls:
            with smtplib.SMTP(self._host, port, timeout=self._timeout_s) as server:
                server.starttls(context=context)
                self._login_if_needed(server)
                server.send_message(msg)
            return

        with smtplib.SMTP_SSL(self._host, port, context=context, timeout=self._timeout_s) as server:
            self._login_if_needed(server)
            server.send_message(msg)

    def send(self, msg: EmailMessage) -> None:
        if not self.configured:
            raise MailDeliveryError("mailer not configured")

        context = ssl.create_default_context()
        primary_mode = "STARTTLS" if self._use_tls else "SSL"
        try:
            self._send_with(self._port, self._use_tls, msg, context)
            return
        except (smtplib.SMTPException, OSError) as exc:
            if not self._fallback_ssl:
                raise MailDeliveryError(str(exc)) from exc
            logger.warning(
                "smtp_send_failed host=%s port=%s mode=%s: %s",
                self._host,
                self._port,
                primary_mode,
                exc,
            )

        fallback_port = 465 if self._use_tls else 587
        fallback_tls = not self._use_tls
        fallback_mode = "STARTTLS" if fallback_tls else "SSL"
        try:
            self._send_with(fallback_port, fallback_tls, msg, context)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(str(exc)) from exc
        logger.info(
            "smtp_sent_with_fallback host=%s port=%s mode=%s",
            self._host,
            fallback_port,
            fallback_mode,
        )
