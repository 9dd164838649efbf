"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from promptlog.core.config import Settings, settings as default_settings
from promptlog.core.middleware import RequestIdFilter, setup_middleware
from promptlog.core.exceptions import PromptLogError, StorageError, ValidationError
from promptlog.schemas.schemas import HealthResponse
from promptlog.services.oauth_service import GoogleOAuthClient
from promptlog.storage.base import LogStore, SessionStore
from promptlog.storage.memory import InMemoryLogStore, InMemorySessionStore
from promptlog.storage.sql import SqlLogStore, SqlSessionStore

from promptlog.api.auth import router as auth_router
from promptlog.api.logs import router as logs_router

logger = logging.getLogger("promptlog")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


def build_store(settings: Settings) -> LogStore:
    """Relational store when DATABASE_URL is set, in-memory otherwise."""
    if settings.DATABASE_URL:
        return SqlLogStore.from_url(settings.DATABASE_URL, echo=settings.DB_ECHO)
    return InMemoryLogStore()


def build_session_store(store: LogStore) -> SessionStore:
    if isinstance(store, SqlLogStore):
        return SqlSessionStore(store.database)
    return InMemorySessionStore()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": exc.message, "errors": jsonable_encoder(exc.errors)},
        )

    @app.exception_handler(StorageError)
    async def storage_handler(request: Request, exc: StorageError):
        # details are already in the log; clients only get the generic message
        return JSONResponse(status_code=500, content={"detail": exc.message})

    @app.exception_handler(PromptLogError)
    async def prompt_log_handler(request: Request, exc: PromptLogError):
        headers = {"WWW-Authenticate": "Cookie"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[LogStore] = None,
    sessions: Optional[SessionStore] = None,
    oauth: Optional[GoogleOAuthClient] = None,
) -> FastAPI:
    """Build the application around explicitly constructed collaborators.

    Anything not passed in is built from ``settings``. The store is closed
    when the application shuts down.
    """
    settings = settings or default_settings
    store = store or build_store(settings)
    sessions = sessions or build_session_store(store)
    if oauth is None:
        oauth = GoogleOAuthClient.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        logger.info("Starting %s API", settings.APP_NAME)
        if settings.DB_AUTO_CREATE:
            store.create_schema()
        logger.info("Storage backend: %s", store.backend_name)
        if settings.identity_configured:
            logger.info("Google OAuth configured; reads and writes require sign-in")
        else:
            logger.info(
                "Google OAuth credentials not found; running without authentication "
                "(anonymous writes %s)",
                "allowed" if settings.ANONYMOUS_WRITES_ALLOWED else "disabled",
            )
        try:
            purged = sessions.purge_expired()
            if purged:
                logger.info("Purged %d expired sessions", purged)
        except StorageError:
            logger.warning("Could not purge expired sessions; is the schema created?")

        yield

        logger.info("Shutting down %s API", settings.APP_NAME)
        sessions.close()
        store.close()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Record and search logs of AI-assisted coding sessions",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.store = store
    app.state.sessions = sessions
    app.state.oauth = oauth

    # Middleware
    setup_middleware(app, settings)

    register_exception_handlers(app)

    # Register routers
    app.include_router(logs_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")

    @app.get("/api/health", response_model=HealthResponse)
    async def health():
        """Quick health check endpoint."""
        return HealthResponse(
            storage=store.backend_name,
            identity=settings.identity_configured,
        )

    return app


configure_logging(default_settings)
app = create_app()
