"""Request-scoped providers for external clients.

Routes receive the calendar connector, the notification senders and the
reminder dispatcher through ``Depends`` so tests can swap in fakes with
``app.dependency_overrides``.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import (
    CALENDAR_NAME,
    EMAIL_PASS,
    EMAIL_USER,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    SMTP_HOST,
    SMTP_PORT,
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_PHONE_NUMBER,
)
from .database import get_db
from .services.calendar import CalendarConnector
from .services.notifications import EmailSender, SmsSender
from .services.reminders import ReminderDispatcher


def get_calendar_connector() -> CalendarConnector:
    return CalendarConnector(
        GOOGLE_CLIENT_ID,
        GOOGLE_CLIENT_SECRET,
        GOOGLE_REDIRECT_URI,
        calendar_name=CALENDAR_NAME,
    )


def get_email_sender() -> EmailSender:
    return EmailSender(SMTP_HOST, SMTP_PORT, EMAIL_USER, EMAIL_PASS)


def get_sms_sender():
    sender = SmsSender(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER)
    try:
        yield sender
    finally:
        sender.close()


def get_reminder_dispatcher(
    db: Session = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
    sms_sender: SmsSender = Depends(get_sms_sender),
) -> ReminderDispatcher:
    return ReminderDispatcher(db, email_sender, sms_sender)
