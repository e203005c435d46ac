"""
Messagely Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn messagely.main:app)
       and by the test suite for a fresh app per test.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌────────────┐ ┌──────────┐ ┌─────────┐ ┌────────────┐  │
    │  │ Rate Limit │→│ Req ID   │→│ Logging │→│ CORS       │  │
    │  └────────────┘ └──────────┘ └─────────┘ └────────────┘  │
    │                                                          │
    │  App-wide dependency: identify (optional identity)       │
    │                                                          │
    │  Routes:                                                 │
    │  ┌──────────┐ ┌──────────┐ ┌────────────┐ ┌──────────┐   │
    │  │ /auth    │ │ /users   │ │ /messages  │ │ /health  │   │
    │  └──────────┘ └──────────┘ └────────────┘ └──────────┘   │
    │                                                          │
    │  Exception Handlers:                                     │
    │  MessagelyError → its status │ Exception → 500           │
    │  RequestValidationError → 422 │ HTTPException → status   │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, optional table creation
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from messagely import __version__
from messagely.config import Settings, settings
from messagely.database import create_tables, dispose_engine
from messagely.exceptions import (
    DatabaseError,
    HTTPStatusError,
    MessagelyError,
    RateLimitExceededError,
    RequestValidationFailedError,
)
from messagely.middleware.auth import identify
from messagely.middleware.logging import RequestLoggingMiddleware
from messagely.middleware.rate_limit import RateLimitMiddleware
from messagely.middleware.request_id import RequestIDMiddleware, request_id_var
from messagely.routes import auth, health, messages, users
from messagely.services.token_service import TokenConfig, TokenService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s to stdout,
    at `log_level`. Called once during startup.
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Chatty third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
        1. Setup logging
        2. Validate critical configuration (logged, not fatal)
        3. Create tables when DB_CREATE_ALL is on
    Shutdown:
        1. Dispose database engine (close all pooled connections)
    """
    app_settings: Settings = app.state.settings
    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("Messagely Backend %s starting up...", __version__)

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    if app_settings.db_create_all:
        await create_tables()
        logger.info("Database tables ensured")

    if app_settings.jwt_expires_in:
        logger.info("Tokens expire after %d seconds", app_settings.jwt_expires_in)
    else:
        logger.info("Tokens are issued without expiry")

    logger.info(
        "Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port
    )
    logger.info("=" * 60)

    yield

    logger.info("Messagely Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(exc: MessagelyError, message: Optional[str] = None) -> dict:
    return {
        "error": exc.error_code,
        "status": exc.status_code,
        "message": message or exc.message,
        "request_id": request_id_var.get(""),
    }


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to JSON error responses.

    Handler hierarchy:
        DatabaseError          → 500, generic message, context logged
        RateLimitExceededError → 429 + Retry-After
        MessagelyError (base)  → exc.status_code / exc.message
        RequestValidationError → 422 validation_error, field locations only
        HTTPException          → framework status, detail as message
        Exception (fallback)   → 500, traceback logged

    Exception handlers NEVER expose stack traces, SQL or file paths.
    """

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        """Database error: generic message to the client, details to the log."""
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc, "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(MessagelyError)
    async def handle_app_error(request: Request, exc: MessagelyError):
        """Typed application errors carry their own status and message."""
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.info("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        """Schema failures: field locations only, never the submitted input."""
        fields = [
            "{}: {}".format(".".join(str(part) for part in error.get("loc", ())), error.get("msg", ""))
            for error in exc.errors()
        ]
        error = RequestValidationFailedError(fields)
        logger.info("[%s] Validation failed on %s: %s", request_id_var.get(""), request.url.path, fields)
        return JSONResponse(status_code=error.status_code, content=_error_body(error))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        """Routing errors (404 unknown path, 405 wrong method) in the common shape."""
        error = HTTPStatusError(exc.status_code, str(exc.detail))
        return JSONResponse(
            status_code=error.status_code,
            content=_error_body(error),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all for truly unexpected errors. Stack trace is logged only."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "status": 500,
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(app_settings: Settings = settings) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Everything configurable reads `app_settings`, never the module-level
    singleton:
        app.state.settings       → lifespan (config check, DB_CREATE_ALL)
        RateLimitMiddleware      → auth request budget and window
        app.state.token_service  → signing secret, algorithm, expiry
    """
    app = FastAPI(
        title="Messagely API",
        description="Direct messaging between registered users, with JWT authentication.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        dependencies=[Depends(identify)],
    )

    app.state.settings = app_settings
    app.state.token_service = TokenService(TokenConfig.from_settings(app_settings))

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added = first to execute: RateLimit → RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware, app_settings=app_settings)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(messages.router)
    app.include_router(health.router)

    return app


# uvicorn expects `messagely.main:app` to be importable
app = create_app()
