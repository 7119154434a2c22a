"""API routes for listing, searching, editing and summarizing tasks."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlmodel import Session

from ..crud import TaskStorage
from ..db.session import get_session
from ..dependencies.auth import get_current_user
from ..errors import TimeConflict, api_error
from ..models import Task, User
from ..schemas.task import (
    BULK_UPDATE_FIELDS,
    BulkUpdateRequest,
    TaskCreate,
    TaskFilters,
    TaskRead,
    TaskUpdate,
    TimeRange,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MIN_SEARCH_LENGTH = 2


def get_storage(session: Session = Depends(get_session)) -> TaskStorage:
    return TaskStorage(session)


def task_filters(
    completed: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
) -> TaskFilters:
    """Collect list filters from the query string, ignoring blank values."""
    raw = {
        "completed": completed,
        "category": category,
        "priority": priority,
        "search": search,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    cleaned = {key: value.strip() for key, value in raw.items() if value is not None and value.strip()}
    try:
        return TaskFilters.model_validate(cleaned)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


def _read(tasks: List[Task]) -> List[TaskRead]:
    return [TaskRead.model_validate(task) for task in tasks]


def _not_found():
    return api_error(status.HTTP_404_NOT_FOUND, "Task not found", "TASK_NOT_FOUND")


def _time_conflict(exc: TimeConflict):
    return api_error(status.HTTP_409_CONFLICT, str(exc), "TIME_CONFLICT")


@router.get("")
def get_tasks(
    filters: TaskFilters = Depends(task_filters),
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    tasks = storage.get_all_tasks(current_user.id, filters)
    stats = storage.get_stats(current_user.id)
    return {
        "tasks": _read(tasks),
        "meta": {
            "total": stats["total"],
            "completed": stats["completed"],
            "pending": stats["pending"],
        },
    }


@router.get("/stats")
def get_task_stats(
    time_range: TimeRange = Query(TimeRange.ALL, alias="timeRange"),
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    stats = storage.get_stats(current_user.id, time_range)
    total = stats["total"]
    stats["completion_rate"] = round(stats["completed"] / total * 100) if total > 0 else 0
    return {
        "stats": stats,
        "byCategory": storage.get_by_category(current_user.id, time_range),
        "upcoming": _read(storage.get_upcoming(current_user.id)),
    }


@router.get("/search")
def search_tasks(
    query: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    if not query or len(query.strip()) < MIN_SEARCH_LENGTH:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            f"Search query must be at least {MIN_SEARCH_LENGTH} characters",
            "INVALID_QUERY",
        )
    tasks = storage.search(current_user.id, query.strip())
    return {"tasks": _read(tasks), "count": len(tasks), "query": query}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    try:
        created = storage.create(current_user.id, task)
    except TimeConflict as e:
        logger.info(f"Time conflict creating task for user {current_user.id}")
        raise _time_conflict(e)
    return {"message": "Task created successfully", "task": TaskRead.model_validate(created)}


@router.post("/bulk")
def bulk_update_tasks(
    payload: BulkUpdateRequest,
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    """Apply completion, category or priority changes to several tasks.

    Other fields in ``updates`` are ignored.
    """
    if not payload.task_ids:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Task IDs array is required", "INVALID_TASK_IDS")
    if not payload.updates:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Updates are required", "NO_UPDATES")

    allowed = {key: value for key, value in payload.updates.items() if key in BULK_UPDATE_FIELDS}
    if not allowed:
        raise api_error(status.HTTP_400_BAD_REQUEST, "No valid updates provided", "INVALID_UPDATES")
    try:
        changes = TaskUpdate.model_validate(allowed).changes()
    except ValidationError as e:
        raise RequestValidationError(
            [{**err, "loc": ("updates", *err["loc"])} for err in e.errors(include_url=False, include_context=False)]
        )

    updated, failed = storage.bulk_update(current_user.id, payload.task_ids, changes)
    return {
        "message": f"Updated {len(updated)} tasks successfully",
        "updated": len(updated),
        "failed": len(failed),
        "tasks": _read(updated),
    }


@router.get("/{task_id}")
def get_task(
    task_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    task = storage.get(task_id, current_user.id)
    if not task:
        raise _not_found()
    return {"task": TaskRead.model_validate(task)}


@router.put("/{task_id}")
def update_task(
    task_update: TaskUpdate,
    task_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    changes = task_update.changes()
    if not changes:
        raise api_error(status.HTTP_400_BAD_REQUEST, "No updates provided", "NO_UPDATES")
    try:
        updated_task = storage.update(task_id, current_user.id, changes)
    except TimeConflict as e:
        logger.info(f"Time conflict updating task {task_id} for user {current_user.id}")
        raise _time_conflict(e)
    if not updated_task:
        raise _not_found()
    return {"message": "Task updated successfully", "task": TaskRead.model_validate(updated_task)}


@router.delete("/{task_id}")
def delete_task(
    task_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    task = storage.delete(task_id, current_user.id)
    if not task:
        raise _not_found()
    return {"message": "Task deleted successfully", "task": TaskRead.model_validate(task)}


@router.patch("/{task_id}/toggle")
def toggle_task_complete(
    task_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    storage: TaskStorage = Depends(get_storage),
):
    try:
        task = storage.toggle_complete(task_id, current_user.id)
    except TimeConflict as e:
        raise _time_conflict(e)
    if not task:
        raise _not_found()
    message = "Task marked as completed" if task.completed else "Task marked as incomplete"
    return {"message": message, "task": TaskRead.model_validate(task)}
