# tasktracker/store.py
"""Owner-scoped task gateway over the SQL store."""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import func, update
from sqlmodel import Session, select

from tasktracker import dates
from tasktracker.errors import AuthorizationError, NotFoundError, ValidationError
from tasktracker.models import (
    Counter,
    Task,
    TaskCreate,
    TaskPriority,
    TaskStatus,
    TaskUpdate,
)
from tasktracker.policy import decide_start_time, decide_status, should_expire

logger = logging.getLogger(__name__)

TASK_COUNTER = "task"

# Accepted ``sortField`` spellings -> Task column
SORT_FIELDS = {
    "createdAt": "created_at",
    "created_at": "created_at",
    "deadline": "deadline",
    "priority": "priority",
    "status": "status",
    "hours": "hours",
    "startTime": "start_time",
    "start_time": "start_time",
    "taskNumber": "task_number",
    "task_number": "task_number",
}


def next_value(session: Session, name: str) -> int:
    """Atomically increment the named counter and return its new value.

    The counter row is created on first use. Runs inside the caller's
    transaction; the caller commits.
    """
    now = datetime.now(timezone.utc)
    result = session.connection().execute(
        update(Counter)
        .where(Counter.name == name)
        .values(value=Counter.value + 1, updated_at=now)
    )
    if result.rowcount == 0:
        session.add(Counter(name=name, value=1, updated_at=now))
        session.flush()
        return 1
    return session.exec(select(Counter.value).where(Counter.name == name)).one()


def _same(old: Any, new: Any) -> bool:
    if isinstance(old, datetime) and isinstance(new, datetime):
        return dates.as_utc(old) == dates.as_utc(new)
    return old == new


class TaskStore:
    """CRUD and batch operations on the tasks of a single owner.

    Every lookup by id checks ownership: an unknown id raises
    ``NotFoundError`` and a task owned by someone else raises
    ``AuthorizationError``.
    """

    def __init__(self, session: Session, owner_id: int) -> None:
        self._session = session
        self.owner_id = owner_id

    def _load(self, task_id: int) -> Task:
        task = self._session.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        if task.owner_id != self.owner_id:
            logger.warning(
                "Unauthorized access attempt to task %s by user %s", task_id, self.owner_id
            )
            raise AuthorizationError("Not authorized to access this task")
        return task

    def create(self, data: TaskCreate) -> Task:
        """Persist a new task with policy-derived status and start time."""
        deadline = dates.fixed_date(data.deadline)
        status = decide_status(data.status, deadline)
        start_time = decide_start_time(status, data.start_time, None, None)

        task = Task(
            owner_id=self.owner_id,
            task_number=next_value(self._session, TASK_COUNTER),
            priority=data.priority,
            deadline=deadline,
            hours=data.hours,
            details=data.details,
            status=status,
            start_time=start_time,
        )
        self._session.add(task)
        self._session.commit()
        self._session.refresh(task)
        logger.info(
            "Created task %s (#%s) for user %s status=%s",
            task.id, task.task_number, self.owner_id, task.status.value,
        )
        return task

    def get(self, task_id: int) -> Task:
        """Fetch one task, flipping it to Expired first if its deadline passed."""
        task = self._load(task_id)
        if should_expire(task.status, task.deadline):
            task.status = TaskStatus.expired
            self._session.add(task)
            self._session.commit()
            self._session.refresh(task)
            logger.info("Task %s expired on read", task.id)
        return task

    def list_tasks(
        self,
        statuses: Optional[Iterable[TaskStatus]] = None,
        priorities: Optional[Iterable[TaskPriority]] = None,
        sort_field: str = "createdAt",
        sort_direction: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Task], int]:
        """Return one page of the owner's tasks and the total match count.

        Values within ``statuses`` (or ``priorities``) are OR'd; the two
        filters are AND'd. Pages are 1-based.
        """
        column_name = SORT_FIELDS.get(sort_field)
        if column_name is None:
            raise ValidationError(f"Invalid sort field: {sort_field}")
        if sort_direction not in ("asc", "desc"):
            raise ValidationError(f"Invalid sort direction: {sort_direction}")
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")

        statement = select(Task).where(Task.owner_id == self.owner_id)
        statuses = list(statuses or [])
        priorities = list(priorities or [])
        if statuses:
            statement = statement.where(Task.status.in_(statuses))
        if priorities:
            statement = statement.where(Task.priority.in_(priorities))

        total = self._session.exec(
            select(func.count()).select_from(statement.subquery())
        ).one()

        column = getattr(Task, column_name)
        order = column.asc() if sort_direction == "asc" else column.desc()
        statement = statement.order_by(order, Task.id).offset((page - 1) * limit).limit(limit)
        return list(self._session.exec(statement).all()), total

    def update(self, task_id: int, data: TaskUpdate) -> Task:
        """Apply a partial update, re-deriving status and start time.

        Nothing is written when the policy rejects the request.
        """
        task = self._load(task_id)
        changes = data.model_dump(exclude_unset=True)

        deadline = task.deadline
        if changes.get("deadline") is not None:
            deadline = dates.fixed_date(changes["deadline"])

        requested_status = changes.get("status") or task.status
        status = decide_status(requested_status, deadline)
        start_time = decide_start_time(
            status, changes.get("start_time"), task.start_time, task.status
        )

        fields = {"deadline": deadline, "status": status, "start_time": start_time}
        for name in ("priority", "hours", "details"):
            if changes.get(name) is not None:
                fields[name] = changes[name]

        changed = {k: v for k, v in fields.items() if not _same(getattr(task, k), v)}
        if not changed:
            return task

        for key, value in changed.items():
            setattr(task, key, value)
        self._session.add(task)
        self._session.commit()
        self._session.refresh(task)
        logger.info("Updated task %s fields=%s", task.id, sorted(changed))
        return task

    def batch_update_status(self, task_ids: Iterable[int], status: TaskStatus) -> list[int]:
        """Set ``status`` on each of the owner's tasks among ``task_ids``.

        Ids that are unknown or belong to other users are left out of the
        result. Start times follow the same rules as a single update.
        """
        status = TaskStatus(status)
        if status == TaskStatus.expired:
            raise ValidationError("Not allowed to manually set tasks to Expired status")

        wanted = list(dict.fromkeys(task_ids))
        if not wanted:
            return []
        tasks = self._session.exec(
            select(Task).where(Task.id.in_(wanted), Task.owner_id == self.owner_id)
        ).all()
        by_id = {task.id: task for task in tasks}

        updated = []
        for task_id in wanted:
            task = by_id.get(task_id)
            if task is None:
                continue
            effective = decide_status(status, task.deadline)
            task.start_time = decide_start_time(effective, None, task.start_time, task.status)
            task.status = effective
            self._session.add(task)
            updated.append(task_id)

        self._session.commit()
        logger.info(
            "Batch status update to %s for user %s: %d of %d tasks",
            status.value, self.owner_id, len(updated), len(wanted),
        )
        return updated

    def remove(self, task_id: int) -> None:
        task = self._load(task_id)
        self._session.delete(task)
        self._session.commit()
        logger.info("Deleted task %s for user %s", task_id, self.owner_id)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
