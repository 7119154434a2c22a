from datetime import date, datetime, time, timezone
from enum import Enum, IntEnum
from typing import Optional

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


class TaskCategory(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    SHOPPING = "shopping"
    HEALTH = "health"
    EDUCATION = "education"
    GENERAL = "general"


class TaskPriority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class Task(SQLModel, table=True):
    """A single task owned by one user.

    At most one incomplete task per user may sit on a given
    (due_date, start_time) slot; the partial unique index backs the
    application-level conflict check.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        Index(
            "uq_tasks_user_open_slot",
            "user_id",
            "due_date",
            "start_time",
            unique=True,
            sqlite_where=text("completed = 0"),
            postgresql_where=text("completed = false"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    title: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)
    completed: bool = Field(default=False, index=True)
    category: str = Field(default=TaskCategory.GENERAL.value, max_length=50, index=True)
    priority: int = Field(default=TaskPriority.MEDIUM.value, index=True)
    due_date: Optional[date] = Field(default=None)
    start_time: Optional[time] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
