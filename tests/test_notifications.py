from __future__ import annotations

import smtplib
from unittest.mock import patch

import httpx
import pytest

from taskx.errors import UpstreamError
from taskx.services.notifications import EmailSender, SmsSender, render_reminder_email, render_reminder_sms


def test_email_sender_uses_starttls_and_login():
    sender = EmailSender("smtp.example.com", 587, "bot@example.com", "app-password")

    with patch("taskx.services.notifications.smtplib.SMTP") as mock_smtp:
        server = mock_smtp.return_value.__enter__.return_value
        sender.send("ada@example.com", "Reminder: Pay rent", "plain body", "<p>html body</p>")

    mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=30.0)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bot@example.com", "app-password")
    from_addr, to_addrs, raw = server.sendmail.call_args.args
    assert from_addr == "bot@example.com"
    assert to_addrs == ["ada@example.com"]
    assert "Subject: Reminder: Pay rent" in raw


def test_email_sender_wraps_smtp_errors():
    sender = EmailSender("smtp.example.com", 587, "bot@example.com", "app-password")

    with patch("taskx.services.notifications.smtplib.SMTP") as mock_smtp:
        server = mock_smtp.return_value.__enter__.return_value
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"Bad credentials")
        with pytest.raises(UpstreamError) as excinfo:
            sender.send("ada@example.com", "subject", "body")

    assert "Bad credentials" in excinfo.value.details


def test_email_sender_requires_credentials():
    with pytest.raises(UpstreamError):
        EmailSender("smtp.example.com", 587, "", "").send("ada@example.com", "subject", "body")


def _sms_sender(handler) -> SmsSender:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SmsSender("AC123", "secret-token", "+15550000000", client=client)


def test_sms_sender_posts_to_twilio():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.content.decode()
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(201, json={"sid": "SM42", "status": "queued"})

    sid = _sms_sender(handler).send("+15551234567", "Reminder: Pay rent")

    assert sid == "SM42"
    assert seen["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
    assert "To=%2B15551234567" in seen["body"]
    assert "From=%2B15550000000" in seen["body"]
    assert seen["auth"].startswith("Basic ")


def test_sms_sender_reports_twilio_error_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": 21211, "message": "The 'To' number is not a valid phone number."})

    with pytest.raises(UpstreamError) as excinfo:
        _sms_sender(handler).send("+1", "hi")

    assert excinfo.value.details == "The 'To' number is not a valid phone number."


def test_sms_sender_wraps_transport_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError):
        _sms_sender(handler).send("+15551234567", "hi")


def test_reminder_email_escapes_task_text():
    subject, plain, html_body = render_reminder_email("<b>Pay</b> rent", "October 19, 2026, 05:30 PM")

    assert subject == "Reminder: <b>Pay</b> rent"
    assert "&lt;b&gt;Pay&lt;/b&gt; rent" in html_body
    assert "October 19, 2026, 05:30 PM" in plain


def test_reminder_sms_text():
    assert render_reminder_sms("Pay rent", "October 19, 2026, 05:30 PM") == (
        'Reminder: Your task "Pay rent" is due at October 19, 2026, 05:30 PM. Don\'t forget to complete it!'
    )


def test_sms_sender_accepts_unreadable_success_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, text="<html>queued</html>")

    assert _sms_sender(handler).send("+15551234567", "hi") == ""
