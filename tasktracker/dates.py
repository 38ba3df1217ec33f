# tasktracker/dates.py
"""Calendar-date normalization.

Deadlines and start times are date-only values. They are stored as
timestamps fixed at 12:00 UTC on the intended calendar date, which keeps
the date stable when rendered in any timezone within +/-12h of UTC.

The expiry boundary is the start of the current calendar day: a task is
expired when its deadline's date is strictly before today. Every code path
that decides expiry goes through ``is_before_today`` or ``expiry_boundary``.
"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union

DateInput = Union[date, datetime, str]

FIXED_HOUR = 12


def parse_calendar_date(value: DateInput) -> date:
    """Return the calendar date the caller wrote, ignoring time-of-day.

    Accepts ``date``/``datetime`` objects and ISO-8601 strings
    (``2024-05-01`` or ``2024-05-01T00:00:00.000Z``). The year/month/day are
    taken as given, never shifted through another timezone.

    Raises:
        ValueError: If the string is not a recognisable date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported date value: {value!r}")

    text = value.strip()
    if not text:
        raise ValueError("Empty date value")
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}") from None


def fixed_date(value: Optional[DateInput]) -> Optional[datetime]:
    """Pin a calendar date to 12:00:00 UTC. ``None`` passes through."""
    if value is None:
        return None
    day = parse_calendar_date(value)
    return datetime(day.year, day.month, day.day, FIXED_HOUR, tzinfo=timezone.utc)


def date_only(value: DateInput) -> date:
    """Strip time-of-day from a timestamp."""
    return parse_calendar_date(value)


def today() -> date:
    """Current calendar date from the server clock."""
    return date.today()


def fixed_now() -> datetime:
    """Today's date pinned to noon UTC."""
    return fixed_date(today())


def is_before_today(value: DateInput) -> bool:
    return date_only(value) < today()


def expiry_boundary() -> datetime:
    """Midnight UTC of today's date.

    Stored fixed dates sit at noon UTC, so ``deadline < expiry_boundary()``
    holds exactly when the deadline's date is before today.
    """
    return datetime.combine(today(), time.min, tzinfo=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps read back from the database."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
