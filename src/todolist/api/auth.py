"""API routes for registration, login, profile and password reset."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Response, status
from sqlmodel import Session

from ..config import Settings
from ..crud import TaskStorage, UserStorage
from ..db.session import get_session
from ..dependencies.auth import (
    get_current_user,
    get_mailer,
    get_password_hasher,
    get_settings,
    get_token_service,
)
from ..errors import DuplicateUser, InvalidOrExpiredToken, InvalidToken, NoTokenProvided, UserNotFound, api_error
from ..models import User
from ..schemas.user import (
    MIN_PASSWORD_LENGTH,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
    UserOut,
)
from ..services.accounts import (
    authenticate_user,
    change_password,
    register_user,
    request_password_reset,
    reset_password,
)
from ..services.mailer import ResetMailer
from ..services.security import PasswordHasher, TokenService, extract_bearer_token

logger = logging.getLogger(__name__)

router = APIRouter()

TOKEN_COOKIE = "token"
TOKEN_COOKIE_MAX_AGE = 24 * 60 * 60
FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _set_token_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=TOKEN_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    response: Response,
    session: Session = Depends(get_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    try:
        user = register_user(UserStorage(session), hasher, payload.username, payload.email, payload.password)
    except DuplicateUser:
        raise api_error(
            status.HTTP_409_CONFLICT, "User already exists with this email or username", "USER_EXISTS"
        )

    token = tokens.issue(user)
    _set_token_cookie(response, token, settings)
    return {
        "message": "User registered successfully",
        "user": UserOut.model_validate(user),
        "token": token,
    }


@router.post("/login")
def login(
    payload: LoginRequest,
    response: Response,
    session: Session = Depends(get_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    user = authenticate_user(UserStorage(session), hasher, payload.email, payload.password)
    if user is None:
        logger.info("Rejected login attempt")
        raise api_error(status.HTTP_401_UNAUTHORIZED, "Invalid credentials", "INVALID_CREDENTIALS")

    token = tokens.issue(user)
    _set_token_cookie(response, token, settings)
    return {
        "message": "Login successful",
        "user": UserOut.model_validate(user),
        "token": token,
    }


@router.get("/profile")
def get_profile(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    stats = TaskStorage(session).get_stats(current_user.id)
    return {
        "user": UserOut.model_validate(current_user),
        "stats": {
            "total_tasks": stats["total"],
            "completed_tasks": stats["completed"],
        },
    }


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
):
    updates = {}
    if payload.username:
        updates["username"] = payload.username
    if payload.email:
        updates["email"] = payload.email

    if payload.password:
        if not payload.current_password:
            raise api_error(
                status.HTTP_400_BAD_REQUEST,
                "Current password is required to change password",
                "CURRENT_PASSWORD_REQUIRED",
            )
        if not hasher.verify(payload.current_password, current_user.password_hash):
            raise api_error(status.HTTP_401_UNAUTHORIZED, "Current password is incorrect", "INCORRECT_PASSWORD")
    elif not updates:
        raise api_error(status.HTTP_400_BAD_REQUEST, "No updates provided", "NO_UPDATES")

    users = UserStorage(session)
    duplicate = api_error(status.HTTP_409_CONFLICT, "Username or email already taken", "DUPLICATE_ENTRY")
    if users.is_taken(updates.get("username"), updates.get("email"), exclude_user_id=current_user.id):
        raise duplicate

    user = current_user
    try:
        if updates:
            user = users.update(user, **updates)
    except DuplicateUser:
        raise duplicate
    if payload.password:
        user = change_password(users, hasher, user, payload.password)

    return {
        "message": "Profile updated successfully",
        "user": UserOut.model_validate(user),
    }


@router.post("/logout")
def logout(response: Response, current_user: User = Depends(get_current_user)):
    # Tokens are stateless; only the browser cookie is dropped
    response.delete_cookie(TOKEN_COOKIE)
    return {"message": "Logout successful"}


@router.post("/refresh")
def refresh_token(
    authorization: Optional[str] = Header(None),
    session: Session = Depends(get_session),
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange a valid or recently expired token for a fresh one."""
    if not authorization:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "No authorization header provided", "NO_AUTH_HEADER")
    try:
        old_token = extract_bearer_token(authorization)
    except NoTokenProvided:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "No token provided", "NO_TOKEN")

    try:
        new_token = tokens.refresh(old_token, UserStorage(session).get)
    except InvalidToken:
        logger.info("Rejected token refresh: invalid token")
        raise api_error(status.HTTP_403_FORBIDDEN, "Invalid token", "INVALID_TOKEN")
    except UserNotFound:
        logger.info("Rejected token refresh: user no longer exists")
        raise api_error(status.HTTP_401_UNAUTHORIZED, "User not found", "USER_NOT_FOUND")

    return {"message": "Token refreshed", "token": new_token}


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    mailer: ResetMailer = Depends(get_mailer),
):
    """Start a password reset.

    The response is the same whether or not the email is registered.
    """
    if not payload.email or not payload.email.strip():
        raise api_error(status.HTTP_400_BAD_REQUEST, "Email is required", "EMAIL_REQUIRED")

    issued = request_password_reset(UserStorage(session), payload.email)
    if issued is not None:
        user, token = issued
        background_tasks.add_task(mailer.send_password_reset, user.email, token)

    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
def reset_password_route(
    payload: ResetPasswordRequest,
    session: Session = Depends(get_session),
    hasher: PasswordHasher = Depends(get_password_hasher),
):
    if not payload.token or not payload.password:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Token and password are required", "MISSING_FIELDS")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise api_error(
            status.HTTP_400_BAD_REQUEST,
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            "PASSWORD_TOO_SHORT",
        )

    try:
        reset_password(UserStorage(session), hasher, payload.token, payload.password)
    except InvalidOrExpiredToken:
        raise api_error(status.HTTP_400_BAD_REQUEST, "Invalid or expired reset token", "INVALID_TOKEN")

    return {"message": "Password has been reset successfully"}
