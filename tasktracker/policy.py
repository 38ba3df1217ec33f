# tasktracker/policy.py
"""Task status policy.

Pure decision logic shared by task create, update and batch-update. Given
what the client asked for and what is already stored, it decides the status
and start time that actually get persisted.
"""

from datetime import datetime
from typing import Optional

from tasktracker import dates
from tasktracker.errors import ValidationError
from tasktracker.models import TaskStatus

START_TIME_IN_PAST = "Start time cannot be earlier than today"


def decide_status(
    requested_status: Optional[TaskStatus],
    deadline: dates.DateInput,
) -> TaskStatus:
    """Return the status to persist.

    A deadline before today forces Expired whatever the client asked for.
    Otherwise a requested Expired falls back to Pending, and a missing
    request defaults to Pending.
    """
    if dates.is_before_today(deadline):
        return TaskStatus.expired
    if requested_status is None or requested_status == TaskStatus.expired:
        return TaskStatus.pending
    return TaskStatus(requested_status)


def decide_start_time(
    effective_status: TaskStatus,
    requested_start_time: Optional[dates.DateInput],
    previous_start_time: Optional[datetime],
    previous_status: Optional[TaskStatus],
) -> Optional[datetime]:
    """Return the start time to persist for ``effective_status``.

    Raises:
        ValidationError: If an In Progress task is given a start time dated
            before today.
    """
    if effective_status == TaskStatus.pending:
        return None

    if effective_status == TaskStatus.in_progress:
        if requested_start_time is not None:
            if dates.is_before_today(requested_start_time):
                raise ValidationError(START_TIME_IN_PAST)
            return dates.fixed_date(requested_start_time)
        if previous_status != TaskStatus.in_progress:
            return dates.fixed_now()
        return previous_start_time

    # Completed / Expired
    if requested_start_time is not None:
        return dates.fixed_date(requested_start_time)
    return previous_start_time


def should_expire(status: TaskStatus, deadline: dates.DateInput) -> bool:
    """True when a stored task must be flipped to Expired."""
    return status != TaskStatus.expired and dates.is_before_today(deadline)
