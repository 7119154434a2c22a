"""Shared fixtures: isolated database, app instance and HTTP client."""

from typing import Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from todolist.config import Settings
from todolist.crud import UserStorage
from todolist.db.session import create_db_and_tables, get_engine
from todolist.main import create_app

DEFAULT_PASSWORD = "Secret123"


class RecordingMailer:
    """Stands in for the SMTP mailer and remembers every reset link."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def send_password_reset(self, to_address: str, token: str) -> bool:
        self.sent.append((to_address, token))
        return True


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file with a cheap bcrypt cost."""
    return Settings(
        jwt_secret="test-secret",
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        access_token_expire_minutes=60,
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def app(settings, mailer):
    application = create_app(settings)
    application.state.mailer = mailer
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session(settings):
    """A database session for storage-level tests."""
    engine = get_engine(settings.database_url)
    create_db_and_tables(engine)
    with Session(engine) as db_session:
        yield db_session
    engine.dispose()


@pytest.fixture
def users(session):
    """Two users with placeholder password hashes."""
    storage = UserStorage(session)
    alice = storage.create("alice", "alice@example.com", "not-a-hash")
    bob = storage.create("bob", "bob@example.com", "not-a-hash")
    return alice, bob


@pytest.fixture
def register(client):
    """Register a user over HTTP and return the response body."""

    def _register(username: str = "alice", email: str = "alice@example.com",
                  password: str = DEFAULT_PASSWORD) -> Dict:
        response = client.post(
            "/api/auth/register",
            json={
                "username": username,
                "email": email,
                "password": password,
                "confirmPassword": password,
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def auth_headers(register):
    """Register a user and return Authorization headers for them."""

    def _auth_headers(username: str = "alice", email: str = "alice@example.com") -> Dict[str, str]:
        body = register(username=username, email=email)
        return {"Authorization": f"Bearer {body['token']}"}

    return _auth_headers
