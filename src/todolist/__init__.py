"""Todo List API: personal task management over REST."""

__version__ = "1.0.0"
