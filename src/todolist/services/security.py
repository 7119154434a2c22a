"""Password hashing and bearer token lifecycle."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from ..errors import ExpiredToken, InvalidToken, NoTokenProvided, UserNotFound
from ..models import User

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class PasswordHasher:
    """Salted bcrypt hashing with a configurable cost factor."""

    def __init__(self, rounds: int = 10):
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        # Compared against on unknown-user logins so both paths cost one bcrypt check
        self._dummy_hash = self.pwd_context.hash("not-a-real-password")

    def hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            # Unrecognised or corrupt digest
            return False

    def dummy_verify(self, plain_password: str) -> None:
        self.pwd_context.verify(plain_password, self._dummy_hash)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an ``Authorization`` header value.

    Accepts both ``Bearer <token>`` and a bare token.

    Raises:
        NoTokenProvided: If the header is missing or carries no token
    """
    if not authorization:
        raise NoTokenProvided("No token provided")
    scheme, _, credentials = authorization.strip().partition(" ")
    token = credentials.strip() if scheme.lower() == "bearer" else authorization.strip()
    if not token:
        raise NoTokenProvided("No token provided")
    return token


class TokenService:
    """Issues and verifies signed, time-limited JWTs.

    Tokens are stateless: nothing is recorded server-side, so logging out
    only discards the client copy.
    """

    def __init__(self, secret_key: str, expires_minutes: int = 24 * 60):
        self.secret_key = secret_key
        self.expires_delta = timedelta(minutes=expires_minutes)

    def issue(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Create a token binding the user's id and email."""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta if expires_delta is not None else self.expires_delta)
        to_encode = {
            "id": user.id,
            "email": user.email,
            "sub": str(user.id),
            "iat": now,
            "exp": expire,
        }
        return jwt.encode(to_encode, self.secret_key, algorithm=ALGORITHM)

    def verify(self, token: str) -> Dict[str, Any]:
        """Decode and validate a token.

        Raises:
            ExpiredToken: If the token is past its expiry
            InvalidToken: For any other verification failure
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except ExpiredSignatureError as e:
            raise ExpiredToken("Token has expired") from e
        except JWTError as e:
            raise InvalidToken("Invalid token") from e
        return self._check_identity(payload)

    def _decode_ignoring_expiry(self, token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as e:
            raise InvalidToken("Invalid token") from e
        return self._check_identity(payload)

    @staticmethod
    def _check_identity(payload: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(payload.get("id"), int):
            raise InvalidToken("Invalid token")
        return payload

    def refresh(self, old_token: str, load_user: Callable[[int], Optional[User]]) -> str:
        """Issue a fresh token for the holder of ``old_token``.

        Strict verification runs first. Only an expiry failure unlocks a
        second pass with expiry checking disabled; every other failure is
        final. The recovered user must still exist.

        Raises:
            InvalidToken: If the token cannot be verified on either pass
            UserNotFound: If the identified user no longer exists
        """
        try:
            payload = self.verify(old_token)
        except ExpiredToken:
            payload = self._decode_ignoring_expiry(old_token)
            logger.info(f"Refreshing expired token for user {payload['id']}")

        user = load_user(payload["id"])
        if user is None:
            raise UserNotFound("User not found")
        return self.issue(user)
