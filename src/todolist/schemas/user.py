import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
PASSWORD_STRENGTH_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
MIN_PASSWORD_LENGTH = 6


def check_username(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Username is required")
    if not 3 <= len(value) <= 50:
        raise ValueError("Username must be between 3-50 characters")
    if not USERNAME_PATTERN.match(value):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    return value


def normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    email: EmailStr
    password: str
    confirm_password: str = Field(alias="confirmPassword")

    @field_validator("username")
    @classmethod
    def valid_username(cls, v: str) -> str:
        return check_username(v)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not v:
            raise ValueError("Password is required")
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not PASSWORD_STRENGTH_PATTERN.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )
        return v

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        if not v:
            raise ValueError("Confirm password is required")
        # password is absent from info.data when it failed its own validation
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH)
    current_password: Optional[str] = Field(None, alias="currentPassword")

    @field_validator("username")
    @classmethod
    def valid_username(cls, v: Optional[str]) -> Optional[str]:
        return check_username(v) if v is not None else v

    @field_validator("email", mode="before")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    created_at: datetime
