"""Application settings loaded from environment variables (+ optional .env)."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Runtime configuration for the API."""
    jwt_secret: str
    database_url: str = "sqlite:///./database.db"
    access_token_expire_minutes: int = 24 * 60
    bcrypt_rounds: int = 10
    frontend_url: str = "http://localhost:3000"
    email_host: str = "smtp.gmail.com"
    email_port: int = 587
    email_user: Optional[str] = None
    email_pass: Optional[str] = None
    cookie_secure: bool = False
    log_level: str = "INFO"
    sql_echo: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables.

        Raises:
            ValueError: If JWT_SECRET is not set
        """
        secret = os.getenv("JWT_SECRET")
        if not secret:
            raise ValueError("JWT_SECRET environment variable is not set.")
        return cls(
            jwt_secret=secret,
            database_url=os.getenv("DATABASE_URL", "sqlite:///./database.db"),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440")),
            bcrypt_rounds=int(os.getenv("BCRYPT_SALT_ROUNDS", "10")),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
            email_host=os.getenv("EMAIL_HOST", "smtp.gmail.com"),
            email_port=int(os.getenv("EMAIL_PORT", "587")),
            email_user=os.getenv("EMAIL_USER") or None,
            email_pass=os.getenv("EMAIL_PASS") or None,
            cookie_secure=_env_bool("COOKIE_SECURE", False),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            sql_echo=_env_bool("SQL_ECHO", False),
        )
