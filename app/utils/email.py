"""
Email Utility

Helper functions for sending emails over SMTP.
"""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """The SMTP server refused or could not be reached."""


def smtp_configured() -> bool:
    return bool(settings.SMTP_SERVER and settings.SMTP_EMAIL)


def send_email(
    recipients: List[str],
    subject: str,
    content: str,
    content_type: str = "plain"
) -> bool:
    """
    Send an email using SMTP settings from config.

    Blocking; call it through asyncio.to_thread from async code.

    Args:
        recipients: List of email addresses
        subject: Email subject
        content: Email body
        content_type: "plain" or "html"

    Returns:
        True if sent, False if SMTP is not configured

    Raises:
        EmailDeliveryError: the server rejected the message or was unreachable
    """
    if not smtp_configured():
        logger.warning(f"SMTP settings not configured. Email '{subject}' to {recipients} not sent.")
        return False

    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.SMTP_EMAIL
        msg["To"] = ", ".join(recipients)

        part = MIMEText(content, content_type)
        msg.attach(part)

        port = int(settings.SMTP_PORT) if settings.SMTP_PORT else 587

        with smtplib.SMTP(settings.SMTP_SERVER, port, timeout=30) as server:
            server.starttls()
            if settings.SMTP_PASSWORD:
                server.login(settings.SMTP_EMAIL, settings.SMTP_PASSWORD)
            server.send_message(msg)

        logger.info(f"Email sent to {recipients}")
        return True

    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email: {str(e)}")
        raise EmailDeliveryError(str(e)) from e
