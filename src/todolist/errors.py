"""Domain exceptions and the HTTP error envelope.

Every failure response carries a human-readable ``error`` and a
machine-readable ``code``.
"""

import logging
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class TokenError(Exception):
    """Base class for bearer token failures."""


class NoTokenProvided(TokenError):
    pass


class ExpiredToken(TokenError):
    pass


class InvalidToken(TokenError):
    pass


class UserNotFound(TokenError):
    pass


class TimeConflict(Exception):
    """Another open task of the same user already holds the date/time slot."""

    message = "A task already exists at this date and time"

    def __init__(self, message: str = message):
        super().__init__(message)


class InvalidOrExpiredToken(Exception):
    """Password reset token is unknown or past its expiry."""


class DuplicateUser(Exception):
    """Username or email is already registered to another account."""


def api_error(status_code: int, error: str, code: str, headers: Optional[Dict[str, str]] = None) -> HTTPException:
    """Build an HTTPException whose body is ``{"error", "code"}``."""
    return HTTPException(status_code=status_code, detail={"error": error, "code": code}, headers=headers)


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


def _clean_message(msg: str) -> str:
    # pydantic prefixes messages raised from custom validators
    for prefix in ("Value error, ", "Assertion failed, "):
        if msg.startswith(prefix):
            return msg[len(prefix):]
    return msg


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        content = exc.detail
    elif exc.status_code == status.HTTP_404_NOT_FOUND:
        content = {"error": "Route not found", "code": "ROUTE_NOT_FOUND", "path": request.url.path}
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        content = {"error": "Method not allowed", "code": "METHOD_NOT_ALLOWED"}
    else:
        content = {"error": str(exc.detail), "code": f"HTTP_{exc.status_code}"}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": _field_name(err.get("loc", ())), "message": _clean_message(err.get("msg", ""))}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={"error": "Validation failed", "code": "VALIDATION_ERROR", "errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
