"""Reminder due-date classification.

Every place that needs to know whether a reminder is due soon (API
responses, the due-soon summary, calendar colouring, the Python client)
goes through :func:`classify_reminder`.

All datetimes are compared as naive UTC; aware values are converted first.
"""
from datetime import datetime, timedelta, timezone
from enum import Enum

DUE_SOON_WINDOW = timedelta(hours=24)


class ReminderStatus(Enum):
    ON_TIME = "on_time"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


def to_utc_naive(value):
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_datetime(value):
    """Parse an ISO-8601 string (a trailing ``Z`` is accepted) into naive UTC."""
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Invalid date")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc_naive(datetime.fromisoformat(text))


def hours_until(now, due_date):
    """Whole hours from ``now`` to ``due_date``, truncated toward zero."""
    delta = to_utc_naive(due_date) - to_utc_naive(now)
    return int(delta.total_seconds() / 3600)


def classify_reminder(now, due_date, completed):
    if completed:
        return ReminderStatus.ON_TIME
    delta = to_utc_naive(due_date) - to_utc_naive(now)
    if delta < timedelta(0):
        return ReminderStatus.OVERDUE
    if delta <= DUE_SOON_WINDOW:
        return ReminderStatus.DUE_SOON
    return ReminderStatus.ON_TIME


def is_due_soon_or_overdue(now, due_date, completed):
    return classify_reminder(now, due_date, completed) is not ReminderStatus.ON_TIME


# The helpers below work on reminder dicts as served by the API
# ("dueDate" as an ISO string, "completed" as a bool).

def _due(reminder):
    return parse_datetime(reminder["dueDate"])


def sort_by_due_date(reminders):
    return sorted(reminders, key=_due)


def flag_reminder(reminder, now):
    return is_due_soon_or_overdue(now, _due(reminder), reminder.get("completed", False))


def highlight_rows(reminders, now=None):
    """Return ``(reminder, highlighted)`` pairs, soonest first.

    Every qualifying row is highlighted on its own.
    """
    now = now or datetime.utcnow()
    return [(r, flag_reminder(r, now)) for r in sort_by_due_date(reminders)]


def due_soon_notification(reminders, now=None):
    """Build the single summary message for a pass over ``reminders``.

    Returns ``None`` when nothing is due soon or overdue.
    """
    now = now or datetime.utcnow()
    count = sum(1 for r in reminders if flag_reminder(r, now))
    if not count:
        return None
    if count == 1:
        return "You have a reminder that is due soon or overdue!"
    return f"You have {count} reminders that are due soon or overdue!"


def calendar_events(reminders):
    events = []
    for reminder in reminders:
        due = _due(reminder)
        plant = reminder.get("plant") or {}
        events.append({
            "id": reminder.get("id"),
            "title": f"{reminder['type'].capitalize()} - {plant.get('name') or 'Unknown'}",
            "start": due.isoformat(),
            "end": due.isoformat(),
            "allDay": True,
            "isCompleted": bool(reminder.get("completed")),
        })
    return events
