"""Models package."""
from .task import Task, TaskCategory, TaskPriority
from .user import User

__all__ = ["Task", "TaskCategory", "TaskPriority", "User", "Priority", "Category"]

# Short aliases used by the schemas and routers
Priority = TaskPriority
Category = TaskCategory
