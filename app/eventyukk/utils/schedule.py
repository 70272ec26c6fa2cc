"""
Wall-clock helpers for event schedules.

Events store a date column plus "HH:MM[:SS]" time strings, so every place that
needs an instant (registration close, attendance deadline, archival cut-off)
goes through these helpers.
"""
import logging
import re
from datetime import date, datetime, time, timedelta

from eventyukk.constant_file import attendance_deadline_buffer_hours

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
END_OF_DAY = "23:59:59"


def parse_date_string(value):
    """Accept a date, a datetime or a ``YYYY-MM-DD[T...]`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).split("T")[0].strip()
    if not DATE_PATTERN.match(text):
        raise ValueError(f"Invalid date: {value!r}")
    return datetime.strptime(text, "%Y-%m-%d").date()


def parse_time_string(value, default="00:00:00"):
    if isinstance(value, time):
        return value
    text = str(value).strip() if value is not None else ""
    if not text:
        text = default
    parts = text.split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(parts[2]) if len(parts) == 3 else 0
    return time(hours, minutes, seconds)


def event_start(event, date_override=None):
    source = date_override or event.event_date
    if not source:
        raise ValueError("Event date is required")
    return datetime.combine(parse_date_string(source), parse_time_string(event.event_time))


def event_end(event):
    """Effective end: end_date/end_time falling back to event_date and 23:59:59."""
    source = event.end_date or event.event_date
    if not source:
        raise ValueError("Event has no date")
    return datetime.combine(parse_date_string(source), parse_time_string(event.end_time, END_OF_DAY))


def attendance_deadline_for(event, now):
    """Event end + buffer. Never raises: falls back to the day after the event
    date, then to 24 hours from ``now``."""
    try:
        return event_end(event) + timedelta(hours=attendance_deadline_buffer_hours)
    except (TypeError, ValueError) as e:
        logger.warning("Could not compute attendance deadline for event %s: %s", event.id, e)

    try:
        if event.event_date:
            return datetime.combine(parse_date_string(event.event_date) + timedelta(days=1), time.min)
    except (TypeError, ValueError) as e:
        logger.warning("Event %s has an unreadable event_date: %s", event.id, e)

    return now + timedelta(hours=24)
