"""
Task API — FastAPI Application Factory
=======================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Used by `taskapi.server` (the process entry point) and by the tests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────────┐                   │
    │  │ Req ID   │→│  Access log     │                   │
    │  └──────────┘ └─────────────────┘                   │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────┐ ┌─────────┐ ┌────────────────────────┐    │
    │  │ GET /│ │ /health │ │ /api/tasks (CRUD)      │    │
    │  └──────┘ └─────────┘ └────────────────────────┘    │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ Validation→400 │ NotFound→404 │ DB/other→500 │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup (lifespan):
    1. Initialize logging
    2. Probe the database once (failure is logged, startup continues)
    3. (taskapi.server logs the listening address once the socket is bound)

    Shutdown:
    The lifespan only logs. The listener drain and the database pool close
    are sequenced by taskapi.lifecycle.LifecycleCoordinator, which must see
    the listener drained before it disposes the engine.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from taskapi import __version__
from taskapi.config import settings
from taskapi.database import check_database_connection
from taskapi.exceptions import (
    DatabaseError,
    NotFoundError,
    TaskAPIError,
    ValidationError,
)
from taskapi.middleware.logging import RequestLoggingMiddleware
from taskapi.middleware.request_id import (
    REQUEST_ID_HEADER,
    RequestIDMiddleware,
    request_id_var,
)
from taskapi.routes import health, index, tasks

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure process-wide logging.

    Format: 2024-01-15T12:00:00 [INFO] taskapi.lifecycle: <message>
    Output: stdout (Docker captures it). Safe to call more than once.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: logging and a one-off database probe.

    An unreachable database does not stop the service from starting; it keeps
    answering /health (reporting "Disconnected") and task requests fail one by
    one with 500 until the database comes back.
    """
    setup_logging()
    logger.info("Task API %s starting up...", __version__)

    if await check_database_connection():
        logger.info("Successfully connected to database")
    else:
        logger.error("Continuing without a database; task requests will fail until it is reachable")

    yield

    logger.info("Application lifespan finished")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, message: str) -> JSONResponse:
    """
    Build the error envelope.

    The request ID header is set here as well: the catch-all 500 handler runs
    in Starlette's outermost middleware, outside RequestIDMiddleware.
    """
    request_id = request_id_var.get("")
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "request_id": request_id,
        },
        headers={REQUEST_ID_HEADER: request_id} if request_id else None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to the `{"success": false, "error": ...}` envelope.

    Handler hierarchy:
        ValidationError       → 400
        NotFoundError         → 404
        DatabaseError         → 500 (generic message; details logged)
        TaskAPIError (base)   → 500
        Exception (fallback)  → 500 (stack trace logged, never returned)
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(500, exc.message)

    @app.exception_handler(TaskAPIError)
    async def handle_app_error(request: Request, exc: TaskAPIError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return _error_response(500, exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return _error_response(500, "An unexpected error occurred. Please try again later.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Task API",
        description="Task CRUD over an async SQL database, with graceful shutdown.",
        version=__version__,
        lifespan=lifespan,
    )

    # Middleware executes in reverse order of addition: RequestID runs first
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(index.router)
    app.include_router(health.router)
    app.include_router(tasks.router)

    return app


# Module-level instance: served by `python -m taskapi` and also usable as
# `uvicorn taskapi.main:app` (without the shutdown coordinator)
app = create_app()
