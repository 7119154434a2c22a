"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..db.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Liveness probe.
    Returns 200 OK if the process is serving requests.
    """
    return {"status": "healthy", "service": "todolist-api"}


@router.get("/api/health")
def database_health(session: Session = Depends(get_session)):
    """
    Readiness probe.
    Returns 200 when the database answers, 503 otherwise.
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        session.connection().execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "disconnected", "timestamp": timestamp},
        )
    return {"status": "healthy", "database": "connected", "timestamp": timestamp}
