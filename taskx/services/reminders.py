"""Deadline reminder dispatcher.

Run by an external scheduler (cron hitting ``GET /api/send-reminders`` or
``run_reminders.py``). Each run looks at a fixed one-minute slice of
deadlines, 9 to 10 minutes ahead, and sends at most one email and one SMS
per task.

The slice only moves with the clock: a scheduler that fires less often than
once a minute will skip some deadlines entirely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ..config import REMINDER_TIMEZONE, REMINDER_WINDOW_END_MINUTES, REMINDER_WINDOW_START_MINUTES
from ..errors import UpstreamError
from ..models import NotificationType, Task, User
from ..schemas.reminders import ReminderFailure, ReminderSummary
from .notifications import EmailSender, SmsSender, render_reminder_email, render_reminder_sms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _DueTask:
    id: str
    text: str
    deadline: datetime
    user_id: str


class ReminderDispatcher:
    def __init__(
        self,
        db: Session,
        email_sender: EmailSender,
        sms_sender: SmsSender,
        clock: Callable[[], datetime] = datetime.utcnow,
        window_start: timedelta = timedelta(minutes=REMINDER_WINDOW_START_MINUTES),
        window_end: timedelta = timedelta(minutes=REMINDER_WINDOW_END_MINUTES),
        display_timezone: str = REMINDER_TIMEZONE,
    ):
        self.db = db
        self.email_sender = email_sender
        self.sms_sender = sms_sender
        self.clock = clock
        self.window_start = window_start
        self.window_end = window_end
        self.display_timezone = ZoneInfo(display_timezone)

    def window(self) -> tuple[datetime, datetime]:
        now = self.clock()
        return now + self.window_start, now + self.window_end

    def due_tasks(self, start: datetime, end: datetime) -> list[Task]:
        return (
            self.db.query(Task)
            .filter(Task.deadline.is_not(None), Task.deadline >= start, Task.deadline <= end)
            .all()
        )

    def format_deadline(self, deadline: datetime) -> str:
        local = deadline.replace(tzinfo=timezone.utc).astimezone(self.display_timezone)
        return f"{local:%B} {local.day}, {local:%Y}, {local:%I:%M %p}"

    def run(self) -> ReminderSummary:
        start, end = self.window()
        logger.info("Querying tasks due between %s and %s", start.isoformat(), end.isoformat())

        tasks = self.due_tasks(start, end)
        logger.info("Found %d tasks in the time window", len(tasks))
        if not tasks:
            return ReminderSummary(message="No todos due in the target time window.")

        pending = []
        for task in tasks:
            if task.reminder_sent:
                logger.info("Skipping task %s - reminder already sent", task.id)
                continue
            pending.append(_DueTask(id=task.id, text=task.text, deadline=task.deadline, user_id=task.user_id))

        logger.info("Need to send reminders for %d tasks", len(pending))
        if not pending:
            return ReminderSummary(message="No new reminders needed.")

        summary = ReminderSummary()
        for due in pending:
            if not self._claim(due.id):
                logger.info("Skipping task %s - claimed by another run", due.id)
                continue

            try:
                reason = self._notify(due)
            except Exception:
                # A single bad task must not abort the rest of the batch.
                logger.exception("Error processing task %s", due.id)
                self.db.rollback()
                reason = "Processing error"

            if reason is None:
                logger.info("Task %s marked as reminded", due.id)
                summary.details.successful.append(due.id)
            else:
                self._release(due.id)
                summary.details.failed.append(ReminderFailure(task_id=due.id, reason=reason))

        sent, failed = len(summary.details.successful), len(summary.details.failed)
        summary.message = f"Reminders processed: {sent} sent successfully, {failed} failed."
        logger.info(summary.message)
        return summary

    def _claim(self, task_id: str) -> bool:
        """Set reminder_sent only if it is still false; False means someone else owns the task."""
        updated = (
            self.db.query(Task)
            .filter(Task.id == task_id, Task.reminder_sent.is_(False))
            .update({Task.reminder_sent: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1

    def _release(self, task_id: str) -> None:
        self.db.query(Task).filter(Task.id == task_id).update(
            {Task.reminder_sent: False}, synchronize_session=False
        )
        self.db.commit()

    def _notify(self, due: _DueTask) -> Optional[str]:
        """Send the reminder over the user's channels; returns a failure reason or None."""
        user = self.db.get(User, due.user_id)
        if user is None:
            logger.warning("No user found for user id %s, skipping task %s", due.user_id, due.id)
            return "User not found"

        preference = NotificationType(user.notification_type or NotificationType.EMAIL)
        formatted = self.format_deadline(due.deadline)
        logger.info("Processing task %s for user %s (preference=%s)", due.id, user.id, preference.value)

        results = []
        if preference.wants_email:
            if user.email:
                results.append(self._send_email(user.email, due, formatted))
            else:
                logger.warning("Email notification requested but no email for user %s", user.id)
        if preference.wants_sms:
            if user.phone_number:
                results.append(self._send_sms(user.phone_number, due, formatted))
            else:
                logger.warning("SMS notification requested but no phone number for user %s", user.id)

        if not results:
            return "No notification channel available"
        if any(results):
            return None
        return "All notification methods failed"

    def _send_email(self, to: str, due: _DueTask, formatted: str) -> bool:
        subject, text, html_body = render_reminder_email(due.text, formatted)
        try:
            self.email_sender.send(to, subject, text, html_body)
        except UpstreamError as exc:
            logger.error("Email failed for task %s: %s (%s)", due.id, exc.message, exc.details)
            return False
        except Exception:
            logger.exception("Unexpected email error for task %s", due.id)
            return False
        return True

    def _send_sms(self, to: str, due: _DueTask, formatted: str) -> bool:
        try:
            self.sms_sender.send(to, render_reminder_sms(due.text, formatted))
        except UpstreamError as exc:
            logger.error("SMS failed for task %s: %s (%s)", due.id, exc.message, exc.details)
            return False
        except Exception:
            logger.exception("Unexpected SMS error for task %s", due.id)
            return False
        return True
