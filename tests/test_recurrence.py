from datetime import datetime

from taskx.services.recurrence import next_deadline


def test_daily_and_weekly():
    deadline = datetime(2026, 10, 19, 9, 0)

    assert next_deadline(deadline, "daily") == datetime(2026, 10, 20, 9, 0)
    assert next_deadline(deadline, "weekly") == datetime(2026, 10, 26, 9, 0)


def test_monthly_clamps_to_end_of_month():
    assert next_deadline(datetime(2027, 1, 31, 9, 0), "monthly") == datetime(2027, 2, 28, 9, 0)


def test_monthly_rolls_over_year():
    assert next_deadline(datetime(2026, 12, 15, 9, 0), "monthly") == datetime(2027, 1, 15, 9, 0)


def test_non_recurring():
    assert next_deadline(datetime(2026, 10, 19, 9, 0), None) is None
