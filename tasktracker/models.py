# tasktracker/models.py
"""Persisted records and request/response schemas for the task tracker API."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from pydantic import field_validator
from sqlmodel import Field, SQLModel

from tasktracker.dates import as_utc, parse_calendar_date


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    pending = "Pending"
    in_progress = "In Progress"
    completed = "Completed"
    expired = "Expired"


class TaskPriority(str, Enum):
    high = "High"
    medium = "Medium"
    low = "Low"


class User(SQLModel, table=True):
    """Registered account. The password column holds ``salt:hash``."""
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str
    email: str = Field(unique=True, index=True)
    password: str
    created_at: datetime = Field(default_factory=_utcnow)


class Task(SQLModel, table=True):
    """Task database table. ``deadline`` and ``start_time`` are fixed dates."""
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", index=True)
    task_number: Optional[int] = Field(default=None, index=True)
    priority: TaskPriority = Field(default=TaskPriority.medium)
    deadline: datetime
    hours: float = Field(ge=1)
    details: str
    status: TaskStatus = Field(default=TaskStatus.pending, index=True)
    start_time: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=_utcnow)


class Counter(SQLModel, table=True):
    """Named sequence used to hand out human-readable task numbers."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    value: int = Field(default=0)
    updated_at: datetime = Field(default_factory=_utcnow)


def _to_calendar_date(value):
    if value is None or value == "":
        return None
    return parse_calendar_date(value)


class TaskCreate(SQLModel):
    """Schema for creating a task. Status and start time are optional."""
    priority: TaskPriority
    deadline: date
    hours: float = Field(ge=1)
    details: str = Field(min_length=1)
    status: Optional[TaskStatus] = None
    start_time: Optional[date] = None

    @field_validator("deadline", "start_time", mode="before")
    @classmethod
    def parse_dates(cls, value):
        return _to_calendar_date(value)


class TaskUpdate(SQLModel):
    """Schema for updating a task. All fields optional."""
    priority: Optional[TaskPriority] = None
    deadline: Optional[date] = None
    hours: Optional[float] = Field(default=None, ge=1)
    details: Optional[str] = Field(default=None, min_length=1)
    status: Optional[TaskStatus] = None
    start_time: Optional[date] = None

    @field_validator("deadline", "start_time", mode="before")
    @classmethod
    def parse_dates(cls, value):
        return _to_calendar_date(value)


class TaskRead(SQLModel):
    """Task as returned to clients; timestamps always carry UTC."""
    id: int
    task_number: Optional[int] = None
    owner_id: int
    priority: TaskPriority
    deadline: datetime
    hours: float
    details: str
    status: TaskStatus
    start_time: Optional[datetime] = None
    created_at: datetime

    @field_validator("deadline", "start_time", "created_at")
    @classmethod
    def attach_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class Pagination(SQLModel):
    total: int
    page: int
    limit: int
    pages: int


class TaskPage(SQLModel):
    tasks: list[TaskRead]
    pagination: Pagination


class BatchStatusUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_ids: list[int] = PydanticField(..., alias="taskIds", min_length=1)
    status: TaskStatus


class BatchStatusResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Task status updated"
    updated_tasks: list[int] = PydanticField(..., alias="updatedTasks")
    status: TaskStatus


class UserRegister(BaseModel):
    username: str = PydanticField(..., min_length=1)
    email: str = PydanticField(..., min_length=3)
    password: str = PydanticField(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Must be a valid email address")
        return v


class UserLogin(BaseModel):
    email: str = PydanticField(..., min_length=1)
    password: str = PydanticField(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class TokenResponse(BaseModel):
    token: str
