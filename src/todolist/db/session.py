"""Database engine and session management."""

from typing import Generator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine


def get_engine(database_url: str, echo: bool = False) -> Engine:
    """Create a database engine for the given URL.

    SQLite connections are shared with FastAPI's threadpool, so the
    same-thread check is disabled for them.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=echo, connect_args=connect_args)


def create_db_and_tables(engine: Engine) -> None:
    """Create all database tables."""
    # Import models so they're registered with SQLModel.metadata
    from ..models import Task, User  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Generator[Session, None, None]:
    """Get a database session bound to the application's engine.

    Yields:
        Session: Database session, closed when the request finishes
    """
    with Session(request.app.state.engine) as session:
        yield session
