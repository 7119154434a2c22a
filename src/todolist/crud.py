"""Storage layer for users and tasks.

Every task query is scoped by ``user_id``; a task owned by someone else
behaves exactly like a missing one.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, case, distinct, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from .errors import DuplicateUser, TimeConflict
from .models import Task, TaskPriority, User
from .schemas.task import SortField, SortOrder, TaskCreate, TaskFilters, TimeRange

logger = logging.getLogger(__name__)

TIME_RANGE_DAYS = {
    TimeRange.WEEK: 7,
    TimeRange.MONTH: 30,
    TimeRange.YEAR: 365,
}
UPCOMING_DAYS = 7
UPCOMING_LIMIT = 10


class UserStorage:
    """Reads and writes user records."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email)).first()

    def get_by_reset_token(self, token: str, now: Optional[datetime] = None) -> Optional[User]:
        """Find the user holding ``token`` while it is still valid."""
        now = now or datetime.now(timezone.utc)
        statement = select(User).where(
            User.reset_token == token,
            col(User.reset_token_expires) > now,
        )
        return self.session.exec(statement).first()

    def is_taken(self, username: Optional[str] = None, email: Optional[str] = None,
                 exclude_user_id: Optional[int] = None) -> bool:
        """True if another user already has the username or email."""
        conditions = []
        if username is not None:
            conditions.append(User.username == username)
        if email is not None:
            conditions.append(User.email == email)
        if not conditions:
            return False
        statement = select(User.id).where(or_(*conditions))
        if exclude_user_id is not None:
            statement = statement.where(User.id != exclude_user_id)
        return self.session.exec(statement).first() is not None

    def create(self, username: str, email: str, password_hash: str) -> User:
        """Insert a new user.

        Raises:
            DuplicateUser: If the username or email is already registered
        """
        user = User(username=username, email=email, password_hash=password_hash)
        self.session.add(user)
        self._commit_unique()
        self.session.refresh(user)
        return user

    def update(self, user: User, **updates: Any) -> User:
        """Apply field updates to ``user`` and persist them.

        Raises:
            DuplicateUser: If a new username or email collides with another user
        """
        for key, value in updates.items():
            setattr(user, key, value)
        user.updated_at = datetime.now(timezone.utc)
        self.session.add(user)
        self._commit_unique()
        self.session.refresh(user)
        return user

    def set_reset_token(self, user: User, token: str, expires: datetime) -> User:
        return self.update(user, reset_token=token, reset_token_expires=expires)

    def update_password(self, user: User, password_hash: str) -> User:
        """Store a new password hash and drop any pending reset token."""
        return self.update(user, password_hash=password_hash, reset_token=None, reset_token_expires=None)

    def delete(self, user_id: int) -> bool:
        """Delete a user together with all of their tasks."""
        user = self.get(user_id)
        if user is None:
            return False
        for task in self.session.exec(select(Task).where(Task.user_id == user_id)).all():
            self.session.delete(task)
        # tasks reference users.id, so they must be gone first
        self.session.flush()
        self.session.delete(user)
        self.session.commit()
        return True

    def _commit_unique(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateUser("User already exists with this email or username") from e


class TaskStorage:
    """Owner-scoped task queries, conflict checks and aggregates.

    Attributes:
        session: Database session used for every query
    """

    def __init__(self, session: Session):
        self.session = session

    def has_time_conflict(
        self,
        user_id: int,
        due_date: Optional[date],
        start_time: Optional[time],
        exclude_task_id: Optional[int] = None,
    ) -> bool:
        """Check whether another open task of the user holds the same slot.

        A missing date or time never conflicts.
        """
        if due_date is None or start_time is None:
            return False
        statement = select(Task.id).where(
            Task.user_id == user_id,
            Task.completed == False,  # noqa: E712
            Task.due_date == due_date,
            Task.start_time == start_time,
        )
        if exclude_task_id is not None:
            statement = statement.where(Task.id != exclude_task_id)
        return self.session.exec(statement).first() is not None

    def create(self, user_id: int, data: TaskCreate) -> Task:
        """Add a new task for ``user_id``.

        Raises:
            TimeConflict: If an open task already holds the date/time slot
        """
        if self.has_time_conflict(user_id, data.due_date, data.start_time):
            raise TimeConflict()
        task = Task(
            user_id=user_id,
            title=data.title,
            description=data.description,
            category=data.category.value,
            priority=int(data.priority),
            due_date=data.due_date,
            start_time=data.start_time,
        )
        self.session.add(task)
        self._commit_slot()
        self.session.refresh(task)
        return task

    def get(self, task_id: int, user_id: int) -> Optional[Task]:
        statement = select(Task).where(Task.id == task_id, Task.user_id == user_id)
        return self.session.exec(statement).first()

    def get_all_tasks(self, user_id: int, filters: Optional[TaskFilters] = None,
                      today: Optional[date] = None) -> List[Task]:
        """Filtered and sorted view of a user's tasks.

        Overdue tasks always come first; inside each group the requested
        sort applies, with open tasks ahead of completed ones on ties.
        """
        filters = filters or TaskFilters()
        today = today or date.today()

        statement = select(Task).where(Task.user_id == user_id)
        if filters.completed is not None:
            statement = statement.where(Task.completed == filters.completed)
        if filters.category is not None:
            statement = statement.where(Task.category == filters.category.value)
        if filters.priority is not None:
            statement = statement.where(Task.priority == filters.priority)
        if filters.search:
            statement = statement.where(self._search_clause(filters.search))

        return list(self.session.exec(statement.order_by(*self._ordering(filters, today))).all())

    def search(self, user_id: int, query: str) -> List[Task]:
        return self.get_all_tasks(user_id, TaskFilters(search=query))

    def update(self, task_id: int, user_id: int, changes: Dict[str, Any]) -> Optional[Task]:
        """Apply ``changes`` to a task.

        When the date or time is touched, the conflict check runs against
        the values the task would hold afterwards.

        Returns:
            Updated Task, or None if the user has no such task

        Raises:
            TimeConflict: If the resulting slot is already taken
        """
        task = self.get(task_id, user_id)
        if task is None:
            return None

        if "due_date" in changes or "start_time" in changes:
            due_date = changes.get("due_date", task.due_date)
            start_time = changes.get("start_time", task.start_time)
            if self.has_time_conflict(user_id, due_date, start_time, exclude_task_id=task.id):
                raise TimeConflict()

        for key, value in changes.items():
            setattr(task, key, value)
        task.updated_at = datetime.now(timezone.utc)
        self.session.add(task)
        self._commit_slot()
        self.session.refresh(task)
        return task

    def delete(self, task_id: int, user_id: int) -> Optional[Task]:
        """Delete a task.

        Returns:
            Detached copy of the deleted Task, or None if not found
        """
        task = self.get(task_id, user_id)
        if task is None:
            return None
        deleted = Task.model_validate(task.model_dump())
        self.session.delete(task)
        self.session.commit()
        return deleted

    def toggle_complete(self, task_id: int, user_id: int) -> Optional[Task]:
        """Flip a task's completion status.

        Raises:
            TimeConflict: If reopening the task would collide with another open task
        """
        task = self.get(task_id, user_id)
        if task is None:
            return None
        task.completed = not task.completed
        task.updated_at = datetime.now(timezone.utc)
        self.session.add(task)
        self._commit_slot()
        self.session.refresh(task)
        return task

    def bulk_update(self, user_id: int, task_ids: Iterable[int],
                    changes: Dict[str, Any]) -> Tuple[List[Task], List[int]]:
        """Apply the same changes to several tasks, each independently.

        Returns:
            (updated tasks, ids that could not be updated)
        """
        updated: List[Task] = []
        failed: List[int] = []
        for task_id in task_ids:
            try:
                task = self.update(task_id, user_id, dict(changes))
            except TimeConflict:
                task = None
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Bulk update failed for task {task_id}: {e}")
                task = None
            if task is None:
                failed.append(task_id)
            else:
                updated.append(task)
        return updated, failed

    def get_stats(self, user_id: int, time_range: TimeRange = TimeRange.ALL,
                  today: Optional[date] = None) -> Dict[str, int]:
        """Aggregate counts over the user's tasks created in ``time_range``."""
        today = today or date.today()
        open_task = Task.completed == False  # noqa: E712
        statement = select(
            func.count(Task.id),
            func.count(case((Task.completed == True, 1))),  # noqa: E712
            func.count(case((open_task, 1))),
            func.count(case((Task.priority == TaskPriority.LOW.value, 1))),
            func.count(case((Task.priority == TaskPriority.MEDIUM.value, 1))),
            func.count(case((Task.priority == TaskPriority.HIGH.value, 1))),
            func.count(case((and_(col(Task.due_date) < today, open_task), 1))),
            func.count(distinct(Task.category)),
        ).where(Task.user_id == user_id, *self._time_range_clause(time_range, today))

        row = self.session.exec(statement).one()
        keys = (
            "total", "completed", "pending", "low_priority", "medium_priority",
            "high_priority", "overdue", "categories_count",
        )
        return {key: int(value or 0) for key, value in zip(keys, row)}

    def get_by_category(self, user_id: int, time_range: TimeRange = TimeRange.ALL,
                        today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Per-category totals, largest category first."""
        today = today or date.today()
        total = func.count(Task.id).label("total")
        statement = (
            select(
                Task.category,
                total,
                func.count(case((Task.completed == True, 1))).label("completed"),  # noqa: E712
            )
            .where(Task.user_id == user_id, *self._time_range_clause(time_range, today))
            .group_by(Task.category)
            .order_by(total.desc(), Task.category)
        )
        return [
            {"category": category, "total": int(count), "completed": int(done)}
            for category, count, done in self.session.exec(statement).all()
        ]

    def get_upcoming(self, user_id: int, days: int = UPCOMING_DAYS, limit: int = UPCOMING_LIMIT,
                     today: Optional[date] = None) -> List[Task]:
        """Open tasks due between today and ``days`` from now."""
        today = today or date.today()
        statement = (
            select(Task)
            .where(
                Task.user_id == user_id,
                Task.completed == False,  # noqa: E712
                col(Task.due_date) >= today,
                col(Task.due_date) <= today + timedelta(days=days),
            )
            .order_by(col(Task.due_date).asc(), col(Task.priority).desc())
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    @staticmethod
    def _search_clause(term: str):
        term = term.strip()
        return or_(
            col(Task.title).icontains(term, autoescape=True),
            col(Task.description).icontains(term, autoescape=True),
        )

    @staticmethod
    def _time_range_clause(time_range: TimeRange, today: date) -> list:
        days = TIME_RANGE_DAYS.get(time_range)
        if days is None:
            return []
        since = datetime.combine(today - timedelta(days=days), time.min, tzinfo=timezone.utc)
        return [col(Task.created_at) >= since]

    @staticmethod
    def _ordering(filters: TaskFilters, today: date) -> list:
        overdue_first = case(
            (and_(col(Task.due_date) < today, Task.completed == False), 0),  # noqa: E712
            else_=1,
        )

        def direction(column):
            return column.asc() if filters.sort_order == SortOrder.ASC else column.desc()

        if filters.sort_by == SortField.DUE_DATE:
            keys = [
                direction(col(Task.due_date)).nulls_last(),
                direction(col(Task.start_time)).nulls_last(),
            ]
        else:
            keys = [direction(col(getattr(Task, filters.sort_by.value)))]
        return [overdue_first.asc(), *keys, col(Task.completed).asc(), direction(col(Task.id))]

    def _commit_slot(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            # Only the open-slot index can reject a task write
            self.session.rollback()
            raise TimeConflict() from e
