from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Iterable, Optional

from .config import SmtpSettings
from .models import INTERNAL, NotificationMessage, Recipient

LOGGER = logging.getLogger(__name__)


def _smtp_connection(smtp: SmtpSettings):
    if not smtp.host:
        return None

    server = smtplib.SMTP(smtp.host, smtp.port, timeout=10)
    try:
        if smtp.use_tls:
            server.starttls()
        if smtp.username and smtp.password:
            server.login(smtp.username, smtp.password)
    except Exception:
        server.quit()
        raise
    return server


def format_address(recipient: Recipient) -> str:
    """Internal mail goes to ``Name <address>``, external mail to the bare address."""
    if recipient.channel == INTERNAL and recipient.name:
        return formataddr((recipient.name, recipient.email))
    return recipient.email or ""


def build_email(recipient: Recipient, message: NotificationMessage, sender: str) -> EmailMessage:
    email = EmailMessage()
    email["Subject"] = message.subject
    email["From"] = sender
    email["To"] = format_address(recipient)
    email["Message-ID"] = make_msgid(domain=sender.rpartition("@")[2] or None)
    email["X-WikiNotif-Category"] = message.category
    email.set_content(message.body_text)
    return email


def send_email(recipient: Recipient, message: NotificationMessage, sender: Optional[str], smtp: SmtpSettings) -> bool:
    """Send the notification via SMTP email."""
    if not recipient.email:
        LOGGER.info("Skipping email notification for %s: no address", recipient.name)
        return False

    if not sender:
        LOGGER.warning("Skipping email notification: no sender address configured")
        return False

    email = build_email(recipient, message, sender)

    try:
        server = _smtp_connection(smtp)
        if server is None:
            LOGGER.warning("SMTP_HOST not configured; email suppressed")
            return False
        with server:
            server.send_message(email)
        LOGGER.info("Sent %s notification '%s' to %s", recipient.channel, message.subject, recipient.email)
        return True
    except Exception as exc:
        LOGGER.exception("Failed to send email notification: %s", exc)
        return False


def dispatch(recipient: Recipient, messages: Iterable[NotificationMessage], sender: Optional[str], smtp: SmtpSettings) -> bool:
    """Send every message to the recipient; True if at least one went out."""
    delivered = False
    for msg in messages:
        if send_email(recipient, msg, sender, smtp):
            delivered = True
        else:
            LOGGER.info("Notification '%s' was not delivered to %s", msg.subject, recipient.name)
    return delivered
