from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..models import Category, Priority

# Fields a bulk edit may touch; identifying fields are left alone
BULK_UPDATE_FIELDS = ("completed", "category", "priority")


class SortField(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    DUE_DATE = "due_date"
    PRIORITY = "priority"
    TITLE = "title"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class TimeRange(str, Enum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


def _minute_precision(v: Optional[time]) -> Optional[time]:
    return v.replace(second=0, microsecond=0) if v is not None else v


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    category: Category = Category.GENERAL
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    start_time: Optional[time] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        return _strip(v)

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v):
        return _blank_to_none(_strip(v))

    @field_validator("due_date", "start_time", mode="before")
    @classmethod
    def empty_schedule(cls, v):
        return _blank_to_none(v)

    @field_validator("start_time")
    @classmethod
    def truncate_seconds(cls, v: Optional[time]) -> Optional[time]:
        return _minute_precision(v)


class TaskUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    completed: Optional[bool] = None
    category: Optional[Category] = None
    priority: Optional[Priority] = None
    due_date: Optional[date] = None
    start_time: Optional[time] = None

    @field_validator("title", "completed", "category", "priority", mode="before")
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return _strip(v)

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v):
        return _blank_to_none(_strip(v))

    @field_validator("due_date", "start_time", mode="before")
    @classmethod
    def empty_schedule(cls, v):
        return _blank_to_none(v)

    @field_validator("start_time")
    @classmethod
    def truncate_seconds(cls, v: Optional[time]) -> Optional[time]:
        return _minute_precision(v)

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly sent by the client, with enums as plain values."""
        data = self.model_dump(exclude_unset=True)
        if "category" in data:
            data["category"] = Category(data["category"]).value
        if "priority" in data:
            data["priority"] = int(data["priority"])
        return data


class TaskRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    description: Optional[str]
    completed: bool
    category: str
    priority: int
    due_date: Optional[date]
    start_time: Optional[time]
    created_at: datetime
    updated_at: datetime

    @field_serializer("start_time")
    def serialize_start_time(self, v: Optional[time]) -> Optional[str]:
        return v.strftime("%H:%M") if v is not None else None


class TaskFilters(BaseModel):
    completed: Optional[bool] = None
    category: Optional[Category] = None
    priority: Optional[int] = Field(None, ge=1, le=3)
    search: Optional[str] = None
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC


class BulkUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_ids: Optional[List[int]] = Field(None, alias="taskIds")
    updates: Optional[Dict[str, Any]] = None
