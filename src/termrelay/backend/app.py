"""FastAPI application factory and configuration"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import health_router, session_router, websocket_router
from .config import Settings
from .exception import TermRelayException
from .logging import setup_logging
from .schema.response import ErrorResponse
from .terminal.reaper import StaleSessionReaper
from .terminal.registry import ConnectionRegistry
from .terminal.tmux import TmuxController

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the stale session reaper with the server and stop it on shutdown"""
    tmux: TmuxController = app.state.tmux
    if tmux.is_available():
        logger.info(f"tmux found: binary={tmux.binary}, socket={tmux.socket_path}")
    else:
        logger.error(f"tmux binary not found: {tmux.binary}; terminal connections will fail")

    reaper: StaleSessionReaper = app.state.reaper
    reaper.start()
    try:
        yield
    finally:
        reaper.stop()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application instance

    This is the application factory function that initializes logging,
    creates the FastAPI app, builds the shared terminal components,
    configures middleware, registers exception handlers, and includes routers.

    Args:
        settings: Relay settings (loaded from env and config.toml if omitted)

    Returns:
        Configured FastAPI application instance
    """
    if settings is None:
        settings = Settings()

    # Initialize logging first
    setup_logging(settings.log_dir)

    # Create FastAPI application
    app = FastAPI(
        title="Terminal Relay API",
        description="Persistent browser terminals backed by tmux",
        lifespan=lifespan,
    )

    # ==================== Terminal Components ====================

    tmux = TmuxController.from_settings(settings)
    registry = ConnectionRegistry()
    reaper = StaleSessionReaper(
        tmux,
        registry,
        ttl_hours=settings.session_ttl_hours,
        interval_minutes=settings.sweep_interval_minutes,
    )

    # Store in app state for dependency injection
    app.state.settings = settings
    app.state.tmux = tmux
    app.state.registry = registry
    app.state.reaper = reaper

    # ==================== CORS Configuration ====================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==================== Exception Handlers ====================

    @app.exception_handler(TermRelayException)
    async def termrelay_exception_handler(request: Request, exc: TermRelayException) -> JSONResponse:
        """Handle all relay business exceptions

        All custom exceptions (ValidationError, NotFoundError, etc.) inherit from
        TermRelayException and are returned in the unified ErrorResponse format.
        """
        return JSONResponse(
            status_code=200,  # Business errors return 200 with success=false
            content=ErrorResponse(
                message=exc.message,
                error={"code": exc.code}
            ).model_dump()
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle Pydantic validation errors from request parsing"""
        return JSONResponse(
            status_code=200,
            content=ErrorResponse(
                message="Invalid input format",
                error={
                    "code": "VALIDATION_ERROR",
                    "details": exc.errors()
                }
            ).model_dump()
        )

    # ==================== Router Registration ====================

    app.include_router(health_router, prefix="/api")
    app.include_router(session_router, prefix="/api")
    app.include_router(websocket_router)

    return app
