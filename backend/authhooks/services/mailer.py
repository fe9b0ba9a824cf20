"""
SMTP mail transport for auth emails.

Implements the ``send(message)`` capability consumed by the template
dispatcher.  Delivery retries, if any, are the SMTP server's business: a
failed send raises and the caller records it.

Environment variables
---------------------
SMTP_HOST     SMTP server host (required).
SMTP_PORT     Port (default: 587).
SMTP_USER     Login user (optional; no AUTH when unset).
SMTP_PASS     Login password.
SMTP_SECURE   "true" for implicit TLS (port 465); otherwise STARTTLS is
              required and the send fails when the server lacks it.
MAIL_FROM     From header (required).
"""

import asyncio
import logging
import os
import smtplib
import ssl
from email.message import EmailMessage

from authhooks.errors import MailConfigurationError
from authhooks.models.outbound_email import OutboundEmail

logger = logging.getLogger(__name__)

_SMTP_TIMEOUT_SECONDS = 30


def _get_smtp_settings() -> dict:
    """
    Read SMTP settings from the environment.

    Raises:
        MailConfigurationError: SMTP_HOST or MAIL_FROM is missing.
    """
    host = os.getenv("SMTP_HOST", "").strip()
    mail_from = os.getenv("MAIL_FROM", "").strip()
    if not host or not mail_from:
        raise MailConfigurationError("SMTP_HOST and MAIL_FROM must be set to send email")

    try:
        port = int(os.getenv("SMTP_PORT", "587"))
    except ValueError:
        port = 587

    return {
        "host": host,
        "port": port,
        "user": os.getenv("SMTP_USER") or None,
        "password": os.getenv("SMTP_PASS") or "",
        "secure": os.getenv("SMTP_SECURE", "").strip().lower() == "true",
        "mail_from": mail_from,
    }


def build_mime_message(message: OutboundEmail, mail_from: str) -> EmailMessage:
    """Convert an OutboundEmail to a multipart/alternative MIME message."""
    mime = EmailMessage()
    mime["From"] = mail_from
    mime["To"] = message.recipient
    mime["Subject"] = message.subject
    mime.set_content(message.text_body or message.subject)
    mime.add_alternative(message.rendered_body, subtype="html")
    return mime


def _send_sync(message: OutboundEmail) -> None:
    settings = _get_smtp_settings()
    mime = build_mime_message(message, settings["mail_from"])

    context = ssl.create_default_context()
    if settings["secure"]:
        smtp: smtplib.SMTP = smtplib.SMTP_SSL(
            settings["host"], settings["port"], context=context, timeout=_SMTP_TIMEOUT_SECONDS
        )
    else:
        smtp = smtplib.SMTP(settings["host"], settings["port"], timeout=_SMTP_TIMEOUT_SECONDS)

    with smtp:
        if not settings["secure"]:
            # SMTPNotSupportedError when the server does not offer STARTTLS
            smtp.ehlo()
            smtp.starttls(context=context)
            smtp.ehlo()
        if settings["user"]:
            smtp.login(settings["user"], settings["password"])
        smtp.send_message(mime)


async def send_auth_email(message: OutboundEmail) -> None:
    """
    Deliver one auth email over SMTP.

    The blocking smtplib session runs in a worker thread so the event loop
    keeps serving other requests.

    Raises:
        MailConfigurationError: SMTP settings are missing.
        smtplib.SMTPException / OSError: delivery failed.
    """
    await asyncio.to_thread(_send_sync, message)
    logger.info(f"Sent auth email {message.subject!r} to {message.recipient}")
