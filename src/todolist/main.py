import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import auth, health, tasks
from .config import Settings
from .db.session import create_db_and_tables, get_engine
from .errors import register_exception_handlers
from .logging_setup import configure_logging
from .services.mailer import ResetMailer
from .services.security import PasswordHasher, TokenService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables(app.state.engine)
    logger.info("Database tables ready")
    yield
    app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API.

    Everything request handlers share (engine, token service, hasher,
    mailer) is created here from one Settings and kept on ``app.state``.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Todo List API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = get_engine(settings.database_url, echo=settings.sql_echo)
    app.state.token_service = TokenService(settings.jwt_secret, settings.access_token_expire_minutes)
    app.state.password_hasher = PasswordHasher(settings.bcrypt_rounds)
    app.state.mailer = ResetMailer.from_settings(settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Mount routers
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
    app.include_router(health.router, tags=["health"])

    @app.get("/")
    async def read_root():
        return {
            "message": "Todo List API",
            "version": __version__,
            "endpoints": {
                "auth": "/api/auth",
                "tasks": "/api/tasks",
                "health": "/api/health",
            },
        }

    return app
