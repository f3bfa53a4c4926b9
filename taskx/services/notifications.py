"""Reminder delivery over SMTP email and Twilio SMS.

Both senders are blocking and raise ``UpstreamError`` on any delivery
failure, carrying the provider's message.
"""

from __future__ import annotations

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import httpx

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def render_reminder_email(text: str, due: str) -> tuple[str, str, str]:
    """Return ``(subject, plain_body, html_body)`` for a task reminder."""
    subject = f"Reminder: {text}"
    plain = f'Reminder: Your task "{text}" is due at {due}.\n\nDon\'t forget to complete it!'
    safe_text = html.escape(text)
    safe_due = html.escape(due)
    html_body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #e0e0e0; border-radius: 5px;">
  <div style="background-color: #4a86e8; padding: 15px; border-radius: 5px 5px 0 0;">
    <h1 style="color: white; margin: 0; font-size: 22px;">Task Reminder</h1>
  </div>
  <div style="padding: 20px; background-color: #f9f9f9;">
    <p style="font-size: 16px; color: #333;">Hi there,</p>
    <p style="font-size: 16px; color: #333;">Just a friendly reminder that your task is due soon:</p>
    <div style="background-color: white; padding: 15px; border-left: 4px solid #4a86e8; margin: 15px 0;">
      <h2 style="margin-top: 0; color: #333; font-size: 18px;">{safe_text}</h2>
      <p style="color: #666; margin-bottom: 0;"><strong>Due:</strong> {safe_due}</p>
    </div>
    <p style="font-size: 16px; color: #333;">Don't forget to complete it on time!</p>
    <p style="font-size: 14px; color: #777; margin-top: 30px;">This is an automated reminder from your task management app.</p>
  </div>
</div>
"""
    return subject, plain, html_body


def render_reminder_sms(text: str, due: str) -> str:
    return f'Reminder: Your task "{text}" is due at {due}. Don\'t forget to complete it!'


class EmailSender:
    def __init__(self, host: str, port: int, username: str, password: str, use_tls: bool = True, timeout: float = 30.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to: str, subject: str, text: str, html_body: Optional[str] = None) -> None:
        if not self.username or not self.password:
            raise UpstreamError("Email delivery not configured", details="Set EMAIL_USER and EMAIL_PASS")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f'"Task Reminder" <{self.username}>'
        msg["To"] = to
        msg.attach(MIMEText(text, "plain"))
        if html_body:
            msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.username, self.password)
                server.sendmail(self.username, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise UpstreamError("Email delivery failed", details=str(exc)) from exc

        logger.info("Email sent to %s: %s", to, subject)


class SmsSender:
    """Sends SMS through the Twilio Messages REST resource."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Optional[httpx.Client] = None,
        timeout: float = 15.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, to: str, body: str) -> str:
        """Send one message and return the Twilio message SID."""
        if not (self.account_sid and self.auth_token and self.from_number):
            raise UpstreamError(
                "SMS delivery not configured",
                details="Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER",
            )

        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = self._client.post(
                url,
                data={"From": self.from_number, "To": to, "Body": body},
                auth=(self.account_sid, self.auth_token),
            )
        except httpx.HTTPError as exc:
            raise UpstreamError("SMS delivery failed", details=str(exc)) from exc

        if response.is_error:
            raise UpstreamError("SMS delivery failed", details=self._error_message(response))

        try:
            sid = response.json().get("sid", "")
        except ValueError:
            # Twilio accepted the message; only the receipt is unreadable.
            logger.warning("Unreadable Twilio response for %s: %s", to, response.text)
            sid = ""
        logger.info("SMS sent to %s (sid=%s)", to, sid)
        return sid

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text}"
        return payload.get("message") or f"HTTP {response.status_code}"

    def close(self) -> None:
        self._client.close()
