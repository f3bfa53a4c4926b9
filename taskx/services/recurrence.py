import calendar
from datetime import datetime, timedelta
from typing import Optional


def next_deadline(deadline: datetime, recurrence: Optional[str]) -> Optional[datetime]:
    """Deadline of the next occurrence of a recurring task, or None if it does not recur.

    Monthly recurrence keeps the day of month, clamped to the last day of
    shorter months (Jan 31 -> Feb 28).
    """
    if recurrence == "daily":
        return deadline + timedelta(days=1)
    if recurrence == "weekly":
        return deadline + timedelta(weeks=1)
    if recurrence == "monthly":
        year = deadline.year + deadline.month // 12
        month = deadline.month % 12 + 1
        day = min(deadline.day, calendar.monthrange(year, month)[1])
        return deadline.replace(year=year, month=month, day=day)
    return None
