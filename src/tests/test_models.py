"""Unit tests for the Task and User models."""

from datetime import date, datetime, time, timedelta

from todolist.models import Category, Priority, Task, TaskCategory, TaskPriority, User


def test_task_creation_minimal():
    """Test creating a task with only the required fields."""
    task = Task(user_id=1, title="Test Task")

    assert task.id is None
    assert task.title == "Test Task"
    assert task.description is None
    assert task.completed is False
    assert task.category == "general"
    assert task.priority == 2
    assert task.due_date is None
    assert task.start_time is None
    assert isinstance(task.created_at, datetime)
    assert isinstance(task.updated_at, datetime)


def test_task_creation_full():
    """Test creating a task with every field set."""
    task = Task(
        user_id=7,
        title="Dentist",
        description="Annual check-up",
        completed=True,
        category=TaskCategory.HEALTH.value,
        priority=TaskPriority.HIGH.value,
        due_date=date(2025, 6, 1),
        start_time=time(9, 30),
    )

    assert task.user_id == 7
    assert task.category == "health"
    assert task.priority == 3
    assert task.due_date == date(2025, 6, 1)
    assert task.start_time == time(9, 30)


def test_priority_values():
    """Test that priorities map onto 1..3."""
    assert [p.value for p in TaskPriority] == [1, 2, 3]
    assert Priority is TaskPriority


def test_category_values():
    """Test the closed set of categories."""
    assert {c.value for c in TaskCategory} == {
        "work", "personal", "shopping", "health", "education", "general",
    }
    assert Category("work") is TaskCategory.WORK


def test_timestamps_default_to_aware_utc():
    """Test that new records carry timezone-aware UTC timestamps."""
    task = Task(user_id=1, title="x")
    user = User(username="alice", email="alice@example.com", password_hash="hash")

    for stamp in (task.created_at, task.updated_at, user.created_at, user.updated_at):
        assert stamp.utcoffset() == timedelta(0)
