#!/usr/bin/env python
"""Run one reminder dispatch pass; point cron at this once a minute.

    * * * * * cd /srv/taskx && python run_reminders.py
"""
import logging
import sys

from taskx.config import LOG_LEVEL, TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
from taskx.database import create_tables, get_session
from taskx.deps import get_email_sender
from taskx.logging_setup import setup_logging
from taskx.services.notifications import SmsSender
from taskx.services.reminders import ReminderDispatcher

logger = logging.getLogger("run_reminders")


def main() -> int:
    setup_logging(LOG_LEVEL)
    create_tables()

    sms_sender = SmsSender(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER)
    try:
        with get_session() as session:
            summary = ReminderDispatcher(session, get_email_sender(), sms_sender).run()
    finally:
        sms_sender.close()

    logger.info("%s", summary.message)
    return 1 if summary.details.failed else 0


if __name__ == "__main__":
    sys.exit(main())
