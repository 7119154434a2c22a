"""Registration, login and password reset."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from ..crud import UserStorage
from ..errors import DuplicateUser, InvalidOrExpiredToken
from ..models import User
from .security import PasswordHasher

logger = logging.getLogger(__name__)

RESET_TOKEN_BYTES = 32
RESET_TOKEN_TTL = timedelta(hours=1)


def register_user(users: UserStorage, hasher: PasswordHasher,
                  username: str, email: str, password: str) -> User:
    """Create an account.

    Raises:
        DuplicateUser: If the username or email is already registered
    """
    if users.is_taken(username=username, email=email):
        raise DuplicateUser("User already exists with this email or username")
    user = users.create(username, email, hasher.hash(password))
    logger.info(f"Registered user {user.id}")
    return user


def authenticate_user(users: UserStorage, hasher: PasswordHasher,
                      email: str, password: str) -> Optional[User]:
    """Return the user if the credentials match, otherwise None."""
    user = users.get_by_email(email)
    if user is None:
        hasher.dummy_verify(password)
        return None
    if not hasher.verify(password, user.password_hash):
        return None
    return user


def change_password(users: UserStorage, hasher: PasswordHasher, user: User, new_password: str) -> User:
    """Set a new password; any pending reset token is cleared with it."""
    return users.update_password(user, hasher.hash(new_password))


def request_password_reset(users: UserStorage, email: str,
                           now: Optional[datetime] = None) -> Optional[Tuple[User, str]]:
    """Issue a reset token for the account registered under ``email``.

    Unknown emails are not an error: nothing is changed and None is
    returned, so callers can answer identically either way.
    """
    user = users.get_by_email(email.strip().lower())
    if user is None:
        return None
    now = now or datetime.now(timezone.utc)
    token = secrets.token_hex(RESET_TOKEN_BYTES)
    users.set_reset_token(user, token, now + RESET_TOKEN_TTL)
    logger.info(f"Password reset token issued for user {user.id}")
    return user, token


def reset_password(users: UserStorage, hasher: PasswordHasher, token: str,
                   new_password: str, now: Optional[datetime] = None) -> User:
    """Consume a reset token and store the new password.

    Raises:
        InvalidOrExpiredToken: If no user holds an unexpired matching token
    """
    user = users.get_by_reset_token(token, now=now)
    if user is None:
        raise InvalidOrExpiredToken("Invalid or expired reset token")
    user = change_password(users, hasher, user, new_password)
    logger.info(f"Password reset completed for user {user.id}")
    return user
