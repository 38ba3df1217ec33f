# tasktracker/routes/tasks.py
"""CRUD endpoints for tasks."""

from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from tasktracker.auth import get_current_user
from tasktracker.database import get_session
from tasktracker.errors import NotFoundError, ValidationError
from tasktracker.models import (
    BatchStatusResult,
    BatchStatusUpdate,
    Pagination,
    TaskCreate,
    TaskPage,
    TaskPriority,
    TaskRead,
    TaskStatus,
    TaskUpdate,
    User,
)
from tasktracker.store import TaskStore, page_count
from tasktracker.sweeper import sweep_expired

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def get_store(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TaskStore:
    return TaskStore(session, user.id)


def get_swept_store(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> TaskStore:
    """Store for the caller, after expiring their overdue tasks."""
    owner_id = user.id
    sweep_expired(session, owner_id)
    return TaskStore(session, owner_id)


def _parse_csv(raw: Optional[str], enum_cls: type[Enum], name: str) -> list:
    if not raw:
        return []
    values = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            values.append(enum_cls(item))
        except ValueError:
            raise ValidationError(f"Invalid {name} value: {item}") from None
    return values


@router.get("", response_model=TaskPage)
def list_tasks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_field: str = Query("createdAt", alias="sortField"),
    sort_direction: str = Query("desc", alias="sortDirection"),
    status: Optional[str] = None,
    priority: Optional[str] = None,
    store: TaskStore = Depends(get_swept_store),
) -> TaskPage:
    """List the caller's tasks, filtered by comma-separated status/priority."""
    tasks, total = store.list_tasks(
        statuses=_parse_csv(status, TaskStatus, "status"),
        priorities=_parse_csv(priority, TaskPriority, "priority"),
        sort_field=sort_field,
        sort_direction=sort_direction.lower(),
        page=page,
        limit=limit,
    )
    return TaskPage(
        tasks=[TaskRead.model_validate(task) for task in tasks],
        pagination=Pagination(total=total, page=page, limit=limit, pages=page_count(total, limit)),
    )


@router.put("/batch-update/status", response_model=BatchStatusResult)
def batch_update_status(
    body: BatchStatusUpdate,
    store: TaskStore = Depends(get_store),
) -> BatchStatusResult:
    """Set one status on several tasks. Tasks the caller does not own are skipped."""
    updated = store.batch_update_status(body.task_ids, body.status)
    if not updated:
        raise NotFoundError("No specified tasks found")
    return BatchStatusResult(updated_tasks=updated, status=body.status)


@router.get("/{task_id}", response_model=TaskRead)
def get_task(task_id: int, store: TaskStore = Depends(get_swept_store)) -> TaskRead:
    """Get a single task by ID."""
    return TaskRead.model_validate(store.get(task_id))


@router.post("", status_code=201, response_model=TaskRead)
def create_task(body: TaskCreate, store: TaskStore = Depends(get_store)) -> TaskRead:
    """Create a new task owned by the caller."""
    return TaskRead.model_validate(store.create(body))


@router.put("/{task_id}", response_model=TaskRead)
def update_task(
    task_id: int, body: TaskUpdate, store: TaskStore = Depends(get_store)
) -> TaskRead:
    """Update an existing task. Only provided fields are changed."""
    return TaskRead.model_validate(store.update(task_id, body))


@router.delete("/{task_id}")
def delete_task(task_id: int, store: TaskStore = Depends(get_store)) -> dict:
    """Delete a task by ID."""
    store.remove(task_id)
    return {"message": "Task deleted"}
