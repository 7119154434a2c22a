from typing import Optional

from fastapi import Depends, Header, Request, status
from sqlmodel import Session

from ..config import Settings
from ..crud import UserStorage
from ..db.session import get_session
from ..errors import ExpiredToken, InvalidToken, NoTokenProvided, api_error
from ..models import User
from ..services.mailer import ResetMailer
from ..services.security import PasswordHasher, TokenService, extract_bearer_token


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_mailer(request: Request) -> ResetMailer:
    return request.app.state.mailer


def get_current_user(
    authorization: Optional[str] = Header(None),
    session: Session = Depends(get_session),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    """Resolve the bearer token on a protected route to its user.

    Only the Authorization header is consulted; the token cookie is a
    browser convenience and is never read here.
    """
    bearer = {"WWW-Authenticate": "Bearer"}
    try:
        payload = tokens.verify(extract_bearer_token(authorization))
    except NoTokenProvided:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Access denied. No token provided.", "NO_TOKEN", headers=bearer)
    except ExpiredToken:
        raise api_error(status.HTTP_403_FORBIDDEN, "Token has expired.", "TOKEN_EXPIRED", headers=bearer)
    except InvalidToken:
        raise api_error(status.HTTP_403_FORBIDDEN, "Invalid token.", "INVALID_TOKEN", headers=bearer)

    user = UserStorage(session).get(payload["id"])
    if user is None:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "User not found.", "USER_NOT_FOUND")
    return user
