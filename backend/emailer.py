import smtplib
import ssl
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Iterable, List, Optional, Sequence, Union

from fastapi import Request

from config import SMTPConfig
from email_bulk import derive_text_from_html

logger = logging.getLogger(__name__)


@dataclass
class Attachment:
    filename: str
    content: bytes
    mime_type: str = "application/pdf"


class EmailDeliveryError(RuntimeError):
    pass


def _normalize_recipients(to: Union[str, Sequence[str]]) -> List[str]:
    if isinstance(to, str):
        return [to]
    return [addr for addr in to if addr]


def build_message(
    sender: str,
    to: Union[str, Sequence[str]],
    subject: str,
    html: str,
    text: Optional[str] = None,
    attachments: Optional[Iterable[Attachment]] = None,
) -> EmailMessage:
    message = EmailMessage()
    message["From"] = sender
    message["To"] = ", ".join(_normalize_recipients(to))
    message["Subject"] = subject
    message.set_content(text if text is not None else derive_text_from_html(html))
    message.add_alternative(html, subtype="html")
    for attachment in attachments or []:
        maintype, _, subtype = attachment.mime_type.partition("/")
        message.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return message


def _send_via_config(config: SMTPConfig, message: EmailMessage) -> None:
    if config.use_ssl:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(config.host, config.port, context=context, timeout=20) as server:
            if config.user and config.password:
                server.login(config.user, config.password)
            server.send_message(message)
        return

    with smtplib.SMTP(config.host, config.port, timeout=20) as server:
        server.ehlo()
        if config.use_tls:
            context = ssl.create_default_context()
            server.starttls(context=context)
            server.ehlo()
        if config.user and config.password:
            server.login(config.user, config.password)
        server.send_message(message)


class Mailer:
    """SMTP sender with a primary and an optional secondary relay."""

    def __init__(self, primary: Optional[SMTPConfig], secondary: Optional[SMTPConfig] = None):
        self.primary = primary
        self.secondary = secondary

    def send(
        self,
        to: Union[str, Sequence[str]],
        subject: str,
        html: str,
        text: Optional[str] = None,
        attachments: Optional[Iterable[Attachment]] = None,
    ) -> None:
        if not self.primary:
            raise EmailDeliveryError("SMTP_PRIMARY configuration missing")
        attachments = list(attachments or [])

        try:
            message = build_message(self.primary.sender, to, subject, html, text, attachments)
            _send_via_config(self.primary, message)
            return
        except Exception as exc:
            logger.warning("Primary SMTP failed, attempting secondary: %s", exc)

        if not self.secondary:
            raise EmailDeliveryError("Primary SMTP failed and SMTP_SECONDARY configuration missing")

        try:
            message = build_message(self.secondary.sender, to, subject, html, text, attachments)
            _send_via_config(self.secondary, message)
        except Exception as exc:
            raise EmailDeliveryError(f"Failed to send email: {exc}") from exc
        logger.info("Email sent via secondary SMTP")


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def send_best_effort(mailer: Mailer, to, subject: str, html: str, text: Optional[str] = None,
                     attachments: Optional[Iterable[Attachment]] = None, *, context: str = "email") -> bool:
    try:
        mailer.send(to, subject, html, text, attachments)
        return True
    except Exception:
        logger.exception("Failed to send %s", context)
        return False
