"""Email dispatch: address resolution and the SMTP helper."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from app.services.email_service import EmailService
from app.utils import email as email_utils
from app.utils.email import EmailDeliveryError, send_email


async def test_sends_to_resolved_address(session_factory, make_user):
    user = await make_user("buyer@example.com")
    sender = MagicMock(return_value=True)

    sent = await EmailService(session_factory, sender=sender).send_notification(
        user.id, "Order shipped", "Order #1042 is on its way."
    )

    assert sent is True
    sender.assert_called_once_with(["buyer@example.com"], "Order shipped", "Order #1042 is on its way.")


async def test_unknown_user_raises(session_factory, db_session):
    sender = MagicMock(return_value=True)

    with pytest.raises(EmailDeliveryError):
        await EmailService(session_factory, sender=sender).send_notification(uuid4(), "s", "b")

    sender.assert_not_called()


async def test_inactive_user_raises(session_factory, make_user):
    user = await make_user("gone@example.com", is_active=False)

    with pytest.raises(EmailDeliveryError):
        await EmailService(session_factory, sender=MagicMock()).send_notification(user.id, "s", "b")


def test_send_email_without_smtp_settings(monkeypatch):
    monkeypatch.setattr(email_utils.settings, "SMTP_SERVER", None)
    monkeypatch.setattr(email_utils.settings, "SMTP_EMAIL", None)

    assert send_email(["someone@example.com"], "subject", "body") is False


def test_send_email_wraps_smtp_errors(monkeypatch):
    monkeypatch.setattr(email_utils.settings, "SMTP_SERVER", "smtp.example.com")
    monkeypatch.setattr(email_utils.settings, "SMTP_EMAIL", "noreply@example.com")
    monkeypatch.setattr(email_utils.settings, "SMTP_PORT", 2525)

    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(email_utils.smtplib, "SMTP", refuse)

    with pytest.raises(EmailDeliveryError):
        send_email(["someone@example.com"], "subject", "body")
